"""
Test suite for the gcsim Simulator facade.

Tests cover:
- Manual stepping through holds
- Auto-run to completion
- Configuration while running or paused
- Reset, snapshots and phase notifications

Author: xwest
"""

import unittest
import sys
import os

import numpy as np

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from gcsim import (
    Simulator, VirtualTimerService, CollectorKind, default_config, Phase, CellState,
    RegionType, SpaceTag, DiagnosticCode, SimulatorBusyError, ConfigurationError
)
from gcsim.memory import STATE_CODES


def make_simulator(kind=CollectorKind.NON_MOVING, **overrides):
    overrides.setdefault('seed', 17)
    timers = VirtualTimerService()
    return Simulator(default_config(kind, **overrides), timers=timers), timers


def step_to(sim, timers, phase, limit=1000):
    """Step manually, waiting out holds, until `phase` is entered"""
    for _ in range(limit):
        if sim.phase == phase:
            return True
        if sim.holding:
            timers.advance(2000)
        else:
            sim.step()
    return sim.phase == phase


class TestManualStepping(unittest.TestCase):

    def setUp(self):
        self.sim, self.timers = make_simulator()

    def tearDown(self):
        self.sim.shutdown()

    def test_initial_heap(self):
        snapshot = self.sim.snapshot()
        self.assertEqual(snapshot.total_cells, 225)
        self.assertEqual(snapshot.state_counts[CellState.FREE], 225)
        self.assertEqual(snapshot.phase, Phase.ALLOCATING)
        self.assertFalse(snapshot.stop_the_world)

    def test_mark_hold_then_sweep(self):
        while self.sim.phase == Phase.ALLOCATING:
            self.sim.step()
        self.assertEqual(self.sim.phase, Phase.MARKING)
        self.assertTrue(self.sim.holding)

        heap = self.sim.heap
        garbage = [cell.id for cell in heap.cells if cell.state == CellState.DEREFERENCED]
        marked = [cell.id for cell in heap.cells if cell.state == CellState.MARKED]

        # Manual steps are ignored until the hold expires
        step = heap.current_step
        self.sim.step()
        self.assertEqual(self.sim.phase, Phase.MARKING)
        self.assertEqual(heap.current_step, step)
        self.assertGreaterEqual(self.sim.diagnostics.count(DiagnosticCode.REDUNDANT_STEP), 1)

        self.timers.advance(1500)

        self.assertEqual(self.sim.phase, Phase.SWEEPING)
        self.assertTrue(all(heap.cells[i].state == CellState.FREE and
                            heap.cells[i].survived_cycles == 0 for i in garbage))
        self.assertTrue(all(heap.cells[i].state == CellState.SURVIVED and
                            heap.cells[i].survived_cycles == 1 for i in marked))

    def test_steps_after_completion_are_noops(self):
        self.assertTrue(step_to(self.sim, self.timers, Phase.COMPLETE, limit=3000))
        self.assertEqual(self.sim.heap.gc_cycles, 4)

        before = self.sim.snapshot()
        self.sim.step()
        self.sim.step()
        after = self.sim.snapshot()

        self.assertEqual(after.current_step, before.current_step)
        self.assertEqual(after.cells, before.cells)
        self.assertFalse(self.sim.set_running(True))

    def test_region_layout_error_is_recorded(self):
        sim, timers = make_simulator(CollectorKind.REGION_BASED, region_grid=1, region_size=2)
        self.assertTrue(step_to(sim, timers, Phase.MARKING, limit=50))
        timers.advance(1200)

        self.assertEqual(sim.phase, Phase.MARKING)
        errors = sim.diagnostics.errors()
        self.assertEqual(errors[-1].code, DiagnosticCode.NO_AVAILABLE_SOURCE)
        sim.shutdown()


class TestAutoRun(unittest.TestCase):

    def test_runs_to_completion(self):
        sim, timers = make_simulator(CollectorKind.COPYING, tick_interval_ms=500)
        self.assertTrue(sim.set_running(True))

        for _ in range(5000):
            if sim.phase == Phase.COMPLETE:
                break
            timers.advance(500)

        self.assertEqual(sim.phase, Phase.COMPLETE)
        self.assertEqual(sim.heap.gc_cycles, 4)
        self.assertFalse(sim.running)
        sim.shutdown()

    def test_generational_keeps_running(self):
        sim, timers = make_simulator(CollectorKind.GENERATIONAL)
        sim.set_running(True)
        for _ in range(200):
            timers.advance(600)

        self.assertTrue(sim.running)
        self.assertGreater(sim.heap.gc_cycles, 0)
        self.assertEqual(sim.diagnostics.count(DiagnosticCode.STALE_TRANSITION), 0)
        sim.shutdown()

    def test_reset_while_running(self):
        sim, timers = make_simulator()
        sim.set_running(True)
        timers.advance(5000)
        self.assertGreater(sim.heap.current_step, 0)

        sim.reset()
        timers.advance(5000)

        self.assertFalse(sim.running)
        self.assertEqual(sim.heap.current_step, 0)
        sim.shutdown()


class TestConfiguration(unittest.TestCase):

    def setUp(self):
        self.sim, self.timers = make_simulator()

    def tearDown(self):
        self.sim.shutdown()

    def test_configure_rejected_while_running(self):
        self.sim.set_running(True)
        with self.assertRaises(SimulatorBusyError):
            self.sim.configure(grid_size=10)
        self.assertEqual(self.sim.config.grid_size, 15)
        self.assertEqual(self.sim.diagnostics.count(DiagnosticCode.SIMULATOR_BUSY), 1)

    def test_configure_while_paused_reinitializes(self):
        self.sim.set_running(True)
        self.timers.advance(3000)
        self.sim.set_running(False)

        heap = self.sim.configure(grid_size=10)

        self.assertEqual(heap.total_cells, 100)
        self.assertEqual(heap.current_step, 0)
        self.assertEqual(heap.free_count, 100)

    def test_switch_collector(self):
        heap = self.sim.configure(collector="region-based")
        self.assertEqual(heap.total_cells, self.sim.config.region_grid ** 2 * self.sim.config.region_size ** 2)
        self.assertEqual(len(heap.regions), 25)

    def test_invalid_configuration_keeps_heap(self):
        heap = self.sim.heap
        with self.assertRaises(ConfigurationError):
            self.sim.configure(grid_size=0)
        self.assertIs(self.sim.heap, heap)
        self.assertEqual(self.sim.diagnostics.count(DiagnosticCode.INVALID_CONFIGURATION), 1)


class TestResetAndSnapshots(unittest.TestCase):

    def test_reset_round_trip(self):
        sim, timers = make_simulator(CollectorKind.REGION_BASED)
        fresh = sim.snapshot()
        for _ in range(30):
            if sim.holding:
                timers.advance(2000)
            sim.step()

        sim.reset()
        again = sim.snapshot()

        self.assertEqual(again.cells, fresh.cells)
        self.assertEqual(again.regions, fresh.regions)
        self.assertEqual(again.current_step, 0)
        self.assertEqual(again.gc_cycles, 0)
        self.assertEqual(again.current_eden_region_count, 1)
        sim.shutdown()

    def test_snapshot_is_detached(self):
        sim, _ = make_simulator()
        snapshot = sim.snapshot()
        sim.step()
        self.assertEqual(snapshot.current_step, 0)
        self.assertEqual(snapshot.state_counts[CellState.FREE], 225)
        sim.shutdown()

    def test_state_grid_flat(self):
        sim, _ = make_simulator()
        sim.step()
        grid = sim.snapshot().state_grid()

        self.assertEqual(grid.shape, (15, 15))
        referenced = STATE_CODES[CellState.REFERENCED]
        dereferenced = STATE_CODES[CellState.DEREFERENCED]
        # Allocation takes the first free cells in index order
        self.assertIn(grid[0, 0], (referenced, dereferenced))
        self.assertEqual(grid[14, 14], STATE_CODES[CellState.FREE])
        sim.shutdown()

    def test_state_grid_regions_as_blocks(self):
        sim, _ = make_simulator(CollectorKind.REGION_BASED)
        heap = sim.heap
        region = heap.regions[6]   # second row, second column
        for cell in region:
            cell.allocate()

        grid = sim.snapshot().state_grid()

        self.assertEqual(grid.shape, (20, 20))
        block = grid[4:8, 4:8]
        self.assertTrue(np.all(block == STATE_CODES[CellState.REFERENCED]))
        self.assertEqual(int(np.count_nonzero(grid)), 16)
        sim.shutdown()

    def test_age_grid_is_capped(self):
        sim, _ = make_simulator()
        cells = sim.heap.cells
        cells[0].state = CellState.SURVIVED
        cells[0].survived_cycles = 9
        cells[1].state = CellState.SURVIVED
        cells[1].survived_cycles = 2

        ages = sim.snapshot().age_grid()

        self.assertEqual(ages[0, 0], 4)
        self.assertEqual(ages[0, 1], 2)
        self.assertEqual(ages[0, 2], 0)
        sim.shutdown()

    def test_snapshot_to_dict(self):
        sim, _ = make_simulator(CollectorKind.COPYING)
        data = sim.snapshot().to_dict()

        self.assertEqual(data['collector'], 'copying')
        self.assertEqual(data['phase'], 'allocating')
        self.assertEqual(data['active_space'], 'from')
        self.assertEqual(len(data['cells']), 225)
        self.assertEqual(data['state_counts']['free'], 225)
        sim.shutdown()

    def test_region_views(self):
        sim, _ = make_simulator(CollectorKind.REGION_BASED)
        snapshot = sim.snapshot()
        self.assertEqual(len(snapshot.regions_of(RegionType.EDEN)), 1)
        self.assertEqual(len(snapshot.region(0).cell_ids), 16)
        sim.shutdown()

    def test_cells_in_space(self):
        sim, _ = make_simulator(CollectorKind.GENERATIONAL)
        snapshot = sim.snapshot()
        self.assertEqual(len(snapshot.cells_in_space(SpaceTag.EDEN)), 45)
        self.assertEqual(len(snapshot.cells_in_space(SpaceTag.SURVIVOR_FROM)), 35)
        self.assertEqual(len(snapshot.cells_in_space(SpaceTag.SURVIVOR_TO)), 40)
        self.assertEqual(len(snapshot.cells_in_space(SpaceTag.TENURED)), 105)
        self.assertEqual(snapshot.cells_in_space(SpaceTag.HEAP), ())
        sim.shutdown()


class TestNotifications(unittest.TestCase):

    def setUp(self):
        self.sim, self.timers = make_simulator()
        self.events = []

    def tearDown(self):
        self.sim.shutdown()

    def test_phase_change_emits_event(self):
        self.sim.subscribe(self.events.append)
        self.assertTrue(step_to(self.sim, self.timers, Phase.SWEEPING))

        phases = [event.phase for event in self.events]
        self.assertEqual(phases, [Phase.MARKING, Phase.SWEEPING])
        self.assertEqual(self.events[0].previous_phase, Phase.ALLOCATING)
        self.assertEqual(self.events[0].collector, CollectorKind.NON_MOVING)
        self.assertIn("marking", self.events[0].message.lower())

    def test_allocation_steps_emit_nothing(self):
        self.sim.subscribe(self.events.append)
        self.sim.step()
        self.sim.step()
        self.assertEqual(self.events, [])

    def test_failing_listener_does_not_stop_stepping(self):
        def broken(event):
            raise RuntimeError("listener failure")

        self.sim.subscribe(broken)
        self.sim.subscribe(self.events.append)

        with self.assertLogs('gcsim.runtime.notifications', level='ERROR'):
            self.assertTrue(step_to(self.sim, self.timers, Phase.MARKING))
        self.assertEqual(len(self.events), 1)

    def test_unsubscribe(self):
        unsubscribe = self.sim.subscribe(self.events.append)
        unsubscribe()
        self.assertTrue(step_to(self.sim, self.timers, Phase.MARKING))
        self.assertEqual(self.events, [])

    def test_completion_message(self):
        self.sim.subscribe(self.events.append)
        self.assertTrue(step_to(self.sim, self.timers, Phase.COMPLETE, limit=3000))
        self.assertEqual(self.events[-1].phase, Phase.COMPLETE)
        self.assertIn("4", self.events[-1].message)

    def test_statistics_summary(self):
        self.assertTrue(step_to(self.sim, self.timers, Phase.COMPLETE, limit=3000))
        stats = self.sim.get_statistics()
        self.assertEqual(stats['gc_cycles'], 4)
        self.assertEqual(len(stats['recent_cycles']), 4)
        self.assertGreater(stats['collection']['objects_allocated'], 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
