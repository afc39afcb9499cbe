"""
Test suite for the gcsim memory model.

Tests cover:
- Cell lifecycle transitions
- Occupancy and state-count queries
- Space layouts for the flat-grid collectors
- Region construction and seeding

Author: xwest
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from gcsim.memory import (
    CellState, SpaceTag, MemoryCell, CellGroup, RegionType, count_states, make_cells,
    build_single_space, build_semispaces, build_generational, generational_columns,
    group_spaces, build_regions, regions_of, first_region, make_rng
)


class TestMemoryCell(unittest.TestCase):
    """Single-cell transitions."""

    def test_allocate_resets_cycles(self):
        cell = MemoryCell(id=0, survived_cycles=3)
        cell.allocate()
        self.assertEqual(cell.state, CellState.REFERENCED)
        self.assertEqual(cell.survived_cycles, 0)

    def test_survive_increments_cycles(self):
        cell = MemoryCell(id=0)
        cell.allocate()
        cell.mark()
        cell.survive()
        self.assertEqual(cell.state, CellState.SURVIVED)
        self.assertEqual(cell.survived_cycles, 1)

    def test_release_resets_cycles(self):
        cell = MemoryCell(id=0, state=CellState.SURVIVED, survived_cycles=2)
        cell.release()
        self.assertTrue(cell.is_free)
        self.assertEqual(cell.survived_cycles, 0)

    def test_receive_then_settle(self):
        cell = MemoryCell(id=0)
        cell.receive(2)
        self.assertEqual(cell.state, CellState.COPYING)
        self.assertEqual(cell.survived_cycles, 2)
        cell.settle()
        self.assertEqual(cell.state, CellState.SURVIVED)
        self.assertEqual(cell.survived_cycles, 2)

    def test_settle_ignores_other_states(self):
        cell = MemoryCell(id=0, state=CellState.DEREFERENCED)
        cell.settle()
        self.assertEqual(cell.state, CellState.DEREFERENCED)

    def test_mark_rule(self):
        self.assertTrue(MemoryCell(id=0, state=CellState.REFERENCED).is_markable)
        self.assertTrue(MemoryCell(id=1, state=CellState.SURVIVED, survived_cycles=1).is_markable)
        self.assertFalse(MemoryCell(id=2, state=CellState.SURVIVED).is_markable)
        self.assertFalse(MemoryCell(id=3, state=CellState.DEREFERENCED).is_markable)
        self.assertFalse(MemoryCell(id=4).is_markable)


class TestCellGroup(unittest.TestCase):
    """Pure occupancy queries."""

    def test_occupancy_excludes_dereferenced(self):
        cells = make_cells(4)
        cells[0].state = CellState.REFERENCED
        cells[1].state = CellState.DEREFERENCED
        group = CellGroup(cells)

        self.assertEqual(group.occupied_count, 1)
        self.assertEqual(group.occupancy, 25)
        self.assertEqual(group.free_count, 2)
        self.assertTrue(group.has_capacity)

    def test_occupancy_rounds(self):
        cells = make_cells(3)
        cells[0].state = CellState.MARKED
        self.assertEqual(CellGroup(cells).occupancy, 33)

    def test_full_group_has_no_capacity(self):
        cells = make_cells(2)
        for cell in cells:
            cell.dereference()
        group = CellGroup(cells)
        self.assertFalse(group.has_capacity)
        self.assertEqual(group.occupancy, 0)

    def test_clear_counts_released_cells(self):
        cells = make_cells(5)
        cells[1].allocate()
        cells[3].state = CellState.SURVIVED
        cells[3].survived_cycles = 2

        released = CellGroup(cells).clear()

        self.assertEqual(released, 2)
        self.assertTrue(all(cell.is_free and cell.survived_cycles == 0 for cell in cells))

    def test_count_states_lists_every_state(self):
        counts = count_states(make_cells(3))
        self.assertEqual(set(counts), set(CellState))
        self.assertEqual(counts[CellState.FREE], 3)
        self.assertEqual(counts[CellState.MARKED], 0)


class TestSpaceLayouts(unittest.TestCase):
    """Deterministic partitions of the flat grid."""

    def test_single_space(self):
        cells = build_single_space(15)
        self.assertEqual(len(cells), 225)
        self.assertTrue(all(cell.space == SpaceTag.HEAP and cell.is_free for cell in cells))

    def test_semispaces_split_by_index(self):
        cells = build_semispaces(10)
        spaces = group_spaces(cells)
        self.assertEqual(len(spaces[SpaceTag.FROM]), 50)
        self.assertEqual(len(spaces[SpaceTag.TO]), 50)
        self.assertTrue(all(cell.id < 50 for cell in spaces[SpaceTag.FROM]))

    def test_semispaces_odd_total(self):
        spaces = group_spaces(build_semispaces(15))
        # ids 0..112 satisfy id < 112.5
        self.assertEqual(len(spaces[SpaceTag.FROM]), 113)
        self.assertEqual(len(spaces[SpaceTag.TO]), 112)

    def test_generational_columns(self):
        self.assertEqual(generational_columns(15, 0.2, 0.5), (3, 5, 7))
        self.assertEqual(generational_columns(10, 0.2, 0.5), (2, 3, 5))

    def test_generational_layout(self):
        cells = build_generational(15)
        spaces = group_spaces(cells)

        self.assertEqual(len(spaces[SpaceTag.EDEN]), 45)
        self.assertEqual(len(spaces[SpaceTag.SURVIVOR_FROM]), 5 * 7)
        self.assertEqual(len(spaces[SpaceTag.SURVIVOR_TO]), 5 * 8)
        self.assertEqual(len(spaces[SpaceTag.TENURED]), 105)

        # Row 0: three eden columns, then survivor-from, then tenured
        self.assertEqual(cells[0].space, SpaceTag.EDEN)
        self.assertEqual(cells[3].space, SpaceTag.SURVIVOR_FROM)
        self.assertEqual(cells[14].space, SpaceTag.TENURED)
        # Bottom row survivors belong to survivor-to
        self.assertEqual(cells[14 * 15 + 3].space, SpaceTag.SURVIVOR_TO)


class TestRegions(unittest.TestCase):
    """Region heap construction."""

    def test_region_heap_shape(self):
        regions = build_regions(5, 4, make_rng(11))
        self.assertEqual(len(regions), 25)
        self.assertTrue(all(len(region) == 16 for region in regions))

        ids = [cell.id for region in regions for cell in region]
        self.assertEqual(ids, list(range(400)))
        self.assertEqual(regions[2].cells[0].region_id, 2)
        self.assertEqual(regions[2].cells[0].id, 32)

    def test_one_region_per_seed_role(self):
        regions = build_regions(5, 4, make_rng(3))
        for region_type in (RegionType.EDEN, RegionType.SURVIVOR_FROM,
                            RegionType.SURVIVOR_TO, RegionType.TENURED):
            self.assertEqual(len(regions_of(regions, region_type)), 1)
        self.assertEqual(len(regions_of(regions, RegionType.UNASSIGNED)), 21)
        self.assertEqual(len(regions_of(regions, RegionType.HUMONGOUS)), 0)

    def test_seeding_is_reproducible(self):
        first = [region.type for region in build_regions(4, 3, make_rng(42))]
        second = [region.type for region in build_regions(4, 3, make_rng(42))]
        self.assertEqual(first, second)

    def test_tiny_grid_gets_leading_seed_only(self):
        regions = build_regions(1, 2, make_rng(0))
        self.assertEqual(regions[0].type, RegionType.EDEN)
        self.assertIsNone(first_region(regions, RegionType.SURVIVOR_TO))

    def test_retype_clears_cells(self):
        regions = build_regions(2, 2, make_rng(0))
        region = regions[0]
        for cell in region:
            cell.allocate()
        self.assertEqual(region.occupancy, 100)

        region.retype(RegionType.UNASSIGNED)

        self.assertEqual(region.type, RegionType.UNASSIGNED)
        self.assertEqual(region.occupancy, 0)
        self.assertEqual(region.free_count, 4)


if __name__ == "__main__":
    unittest.main(verbosity=2)
