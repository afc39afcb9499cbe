"""
Step scheduler for gcsim.

Decides when the phase driver advances: on an explicit request, on the
auto-run tick, or when the visual hold of a phase expires. At most one timer
is armed at any moment. Every timer remembers the epoch it was armed in;
resetting, pausing or reconfiguring bumps the epoch, so a callback that
escaped cancellation is recognised as stale and dropped.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from ..collectors.base import Phase, StepResult
from ..errors import DiagnosticCode, DiagnosticLog, SimulationWarning
from .timers import TimerHandle, TimerService


logger = logging.getLogger(__name__)


class TimerKind(Enum):
    """Why a timer was armed"""
    TICK = "tick"    # Auto-run interval
    HOLD = "hold"    # Continuation after a hold-bearing phase


class Scheduler:
    """
    Owns the running flag, the hold deadline and the single armed timer.

    `advance` performs one driver step and returns its result; the scheduler
    calls it with `lock` held, from the caller's thread for manual steps and
    from the timer thread otherwise.
    """

    def __init__(
        self,
        timers: TimerService,
        advance: Callable[[], StepResult],
        diagnostics: DiagnosticLog,
        lock=None,
        tick_interval_ms: int = 1000
    ):
        self.timers = timers
        self._advance = advance
        self._diagnostics = diagnostics
        self._lock = lock or threading.RLock()

        self.tick_interval_ms = tick_interval_ms
        self.epoch = 0
        self.running = False
        self.hold_until_ms: Optional[float] = None
        self._handle: Optional[TimerHandle] = None
        self._handle_kind: Optional[TimerKind] = None
        self._current_phase: Phase = Phase.ALLOCATING

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def holding(self) -> bool:
        """True while a hold deadline lies in the future"""
        with self._lock:
            return (self.hold_until_ms is not None
                    and self.timers.now_ms() < self.hold_until_ms)

    @property
    def armed(self) -> Optional[TimerKind]:
        with self._lock:
            if self._handle is not None and self._handle.active:
                return self._handle_kind
            return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, phase: Phase = Phase.ALLOCATING):
        """Forget everything about the previous heap"""
        with self._lock:
            self._invalidate()
            self.running = False
            self.hold_until_ms = None
            self._current_phase = phase

    def set_running(self, running: bool) -> bool:
        """Arm or disarm the auto-run loop; returns the resulting state"""
        with self._lock:
            if running == self.running:
                return self.running

            if not running:
                self.running = False
                self._invalidate()
                logger.info("Auto-run paused")
                return False

            if self._current_phase == Phase.COMPLETE:
                self._reject_step("Cannot run: simulation is complete")
                return False

            self.running = True
            logger.info("Auto-run started (tick %d ms)", self.tick_interval_ms)
            if self.armed is not None:
                return True

            remaining = self._hold_remaining()
            if remaining > 0:
                self._arm(remaining, TimerKind.HOLD)
            else:
                self.hold_until_ms = None
                self._arm(self.tick_interval_ms, TimerKind.TICK)
            return True

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def request_step(self) -> Optional[StepResult]:
        """Manual step; None when the request was ignored"""
        with self._lock:
            if self.running:
                self._reject_step("Step ignored: auto-run is active")
                return None
            if self.holding:
                remaining = self._hold_remaining()
                self._reject_step(f"Step ignored: {self._current_phase.value} "
                                  f"hold has {remaining:.0f} ms left")
                return None

            # Deadline passed while paused
            self._invalidate()
            self.hold_until_ms = None
            return self._step()

    def _step(self) -> StepResult:
        result = self._advance()
        self._current_phase = result.phase

        if result.phase == Phase.COMPLETE and self.running:
            self.running = False
            logger.info("Auto-run stopped: simulation complete")

        if result.hold_ms > 0:
            self.hold_until_ms = self.timers.now_ms() + result.hold_ms
            self._arm(result.hold_ms, TimerKind.HOLD)
        elif self.running:
            self._arm(self.tick_interval_ms, TimerKind.TICK)
        return result

    def _fire(self, epoch: int, kind: TimerKind):
        with self._lock:
            if epoch != self.epoch:
                warning = SimulationWarning(
                    f"Dropped {kind.value} timer from epoch {epoch} (current {self.epoch})",
                    DiagnosticCode.STALE_TRANSITION,
                    phase=self._current_phase.value
                )
                self._diagnostics.record(warning.diagnostic)
                logger.warning("Stale %s transition dropped (epoch %d != %d)",
                               kind.value, epoch, self.epoch)
                return

            self._handle = None
            self._handle_kind = None
            if kind == TimerKind.HOLD:
                self.hold_until_ms = None
            elif not self.running:
                return
            self._step()

    # ------------------------------------------------------------------
    # Timer bookkeeping
    # ------------------------------------------------------------------

    def _arm(self, delay_ms: float, kind: TimerKind):
        if self._handle is not None:
            self._handle.cancel()
        epoch = self.epoch
        self._handle_kind = kind
        self._handle = self.timers.call_later(delay_ms, lambda: self._fire(epoch, kind))

    def _invalidate(self):
        self.epoch += 1
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._handle_kind = None

    def _hold_remaining(self) -> float:
        if self.hold_until_ms is None:
            return 0.0
        return max(0.0, self.hold_until_ms - self.timers.now_ms())

    def _reject_step(self, message: str):
        notice = SimulationWarning(
            message,
            DiagnosticCode.REDUNDANT_STEP,
            phase=self._current_phase.value,
            severity="info"
        )
        self._diagnostics.record(notice.diagnostic)
        logger.debug(message)

    def shutdown(self):
        with self._lock:
            self.running = False
            self._invalidate()
