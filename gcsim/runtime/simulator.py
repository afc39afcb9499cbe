"""
Simulator facade.

`Simulator` ties one collector strategy, its heap, the step scheduler and
the phase notifier together behind a thread-safe surface. All state changes
go through one re-entrant lock, so manual calls and timer callbacks never
interleave.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from ..collectors import CollectorStrategy, HeapState, Phase, StepResult, create_collector
from ..collectors.copying import other_space
from ..config import DEFAULT_NON_MOVING, SimulatorConfig
from ..errors import DiagnosticLog, SimulationError, SimulatorBusyError
from ..snapshot import HeapSnapshot
from .notifications import PhaseEvent, PhaseListener, PhaseNotifier, describe
from .scheduler import Scheduler
from .timers import ThreadingTimerService, TimerService


logger = logging.getLogger(__name__)


class Simulator:
    """
    Step-driven garbage collection simulator.

    Example:
        sim = Simulator(default_config("copying", seed=7))
        sim.subscribe(lambda event: print(event.message))
        for _ in range(20):
            sim.step()
        print(sim.snapshot().state_grid())
    """

    def __init__(self, config: Optional[SimulatorConfig] = None,
                 timers: Optional[TimerService] = None):
        self._lock = threading.RLock()
        self.timers = timers or ThreadingTimerService()

        self._diagnostics = DiagnosticLog()
        self._notifier = PhaseNotifier()
        self._scheduler = Scheduler(
            self.timers,
            self._advance,
            self._diagnostics,
            lock=self._lock
        )

        self.config: SimulatorConfig = config or DEFAULT_NON_MOVING
        self.collector: Optional[CollectorStrategy] = None
        self.heap: Optional[HeapState] = None
        self.initialize(self.config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, config: Optional[SimulatorConfig] = None) -> HeapState:
        """Build a fresh heap, cancelling any pending timer"""
        with self._lock:
            config = config or self.config
            try:
                collector = create_collector(config)
            except SimulationError as e:
                self._diagnostics.record(e.diagnostic)
                raise

            self.config = config
            self.collector = collector
            self.heap = collector.initialize()
            self._scheduler.tick_interval_ms = config.tick_interval_ms
            self._scheduler.reset(self.heap.phase)

            logger.info("Initialized %s simulator (%d cells, seed=%s)",
                        config.collector.value, self.heap.total_cells, config.seed)
            return self.heap

    def reset(self) -> HeapState:
        """Reinitialize with the current configuration"""
        return self.initialize(self.config)

    def configure(self, **changes) -> HeapState:
        """Apply configuration changes and reinitialize; only while paused"""
        with self._lock:
            if self._scheduler.running:
                error = SimulatorBusyError(
                    "Configuration cannot change while the simulation is running",
                    step=self.heap.current_step,
                    phase=self.heap.phase.value,
                    help_text="pause with set_running(False) first"
                )
                self._diagnostics.record(error.diagnostic)
                raise error

            try:
                updated = self.config.with_changes(**changes)
            except SimulationError as e:
                self._diagnostics.record(e.diagnostic)
                raise
            return self.initialize(updated)

    def shutdown(self):
        with self._lock:
            self._scheduler.shutdown()
        self.timers.shutdown()
        logger.info("Simulator shut down")

    def __enter__(self) -> 'Simulator':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self) -> HeapState:
        """Advance one transition, unless a hold, completion or auto-run blocks it"""
        with self._lock:
            self._scheduler.request_step()
            return self.heap

    def set_running(self, running: bool) -> bool:
        return self._scheduler.set_running(running)

    def _advance(self) -> StepResult:
        heap = self.heap
        result = self.collector.step(heap)
        self._diagnostics.extend(result.diagnostics)

        if result.phase_changed:
            self._notifier.emit(self._event_for(result))
        return result

    def _event_for(self, result: StepResult) -> PhaseEvent:
        heap = self.heap
        space = ""
        if heap.active_space is not None:
            tag = other_space(heap.active_space) if result.phase == Phase.COPYING else heap.active_space
            space = tag.value

        return PhaseEvent(
            collector=heap.collector,
            previous_phase=result.previous_phase,
            phase=result.phase,
            message=describe(heap.collector, result.phase, heap.gc_cycles, space),
            step=heap.current_step,
            gc_cycles=heap.gc_cycles
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def holding(self) -> bool:
        return self._scheduler.holding

    @property
    def phase(self) -> Phase:
        return self.heap.phase

    @property
    def diagnostics(self) -> DiagnosticLog:
        return self._diagnostics

    def snapshot(self) -> HeapSnapshot:
        with self._lock:
            return HeapSnapshot.capture(
                self.heap,
                self.config,
                holding=self._scheduler.holding,
                running=self._scheduler.running
            )

    def subscribe(self, listener: PhaseListener) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = self.heap.stats
            return {
                'collector': self.config.collector.value,
                'phase': self.heap.phase.value,
                'current_step': self.heap.current_step,
                'gc_cycles': self.heap.gc_cycles,
                'collection': stats.as_dict(),
                'recent_cycles': [
                    {
                        'cycle': record.cycle,
                        'kind': record.kind,
                        'step': record.step,
                        'freed': record.freed,
                        'copied': record.copied,
                        'promoted': record.promoted,
                        'overflowed': record.overflowed,
                    }
                    for record in list(stats.history)[-10:]
                ],
                'diagnostics': self._diagnostics.counts(),
            }
