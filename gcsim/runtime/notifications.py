"""
Phase-change notifications.

Listeners receive a `PhaseEvent` whenever the driver enters a new phase.
Delivery is fire-and-forget: a failing listener is logged and skipped, it
never interrupts stepping.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from ..collectors.base import Phase
from ..config import CollectorKind


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseEvent:
    """One phase transition, with a human-readable description"""
    collector: CollectorKind
    previous_phase: Phase
    phase: Phase
    message: str
    step: int
    gc_cycles: int
    timestamp: float = field(default_factory=time.time)


PhaseListener = Callable[[PhaseEvent], None]


_NM = CollectorKind.NON_MOVING
_CP = CollectorKind.COPYING
_GN = CollectorKind.GENERATIONAL
_RB = CollectorKind.REGION_BASED

PHASE_MESSAGES: Dict[Tuple[CollectorKind, Phase], str] = {
    (_NM, Phase.ALLOCATING): "GC cycle {gc_cycles} complete, allocating again",
    (_NM, Phase.MARKING): "Heap nearly full, marking objects in use",
    (_NM, Phase.SWEEPING): "Sweeping unreachable objects in place",
    (_NM, Phase.COMPLETE): "Simulation complete after {gc_cycles} GC cycles",

    (_CP, Phase.ALLOCATING): "GC cycle {gc_cycles} complete, allocating in the {space} space",
    (_CP, Phase.MARKING): "Active space nearly full, marking objects in use",
    (_CP, Phase.COPYING): "Copying live objects into the {space} space",
    (_CP, Phase.SWAPPING): "Swapping from and to spaces",
    (_CP, Phase.COMPLETE): "Simulation complete after {gc_cycles} GC cycles",

    (_GN, Phase.ALLOCATING): "GC cycle {gc_cycles} complete, eden is free for allocation",
    (_GN, Phase.MARKING): "Eden full, starting minor GC cycle {next_cycle}: marking",
    (_GN, Phase.COPYING_TO_SURVIVOR): "Copying live eden objects into the active survivor",
    (_GN, Phase.COPYING_BETWEEN_SURVIVORS):
        "Copying inactive survivor into the active one, promoting old objects",
    (_GN, Phase.SWAPPING): "Finishing copy and swapping survivor roles",
    (_GN, Phase.MAJOR_GC_MARKING): "Tenured full, starting major GC cycle {next_cycle}: marking",
    (_GN, Phase.MAJOR_GC_COMPACTING): "Compacting the tenured generation",

    (_RB, Phase.ALLOCATING): "GC cycle {gc_cycles} complete, eden regions free for allocation",
    (_RB, Phase.MARKING): "Eden regions full, marking live objects",
    (_RB, Phase.EVACUATING): "Evacuating live eden objects into the survivor region",
    (_RB, Phase.MIXED_GC): "Survivor region full, promoting to tenured (cycle {gc_cycles})",
}


def describe(collector: CollectorKind, phase: Phase, gc_cycles: int,
             space: str = "") -> str:
    template = PHASE_MESSAGES.get((collector, phase), "{phase}")
    return template.format(gc_cycles=gc_cycles, next_cycle=gc_cycles + 1,
                           space=space, phase=phase.value)


class PhaseNotifier:
    """Registry of phase listeners"""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[PhaseListener] = []

    def subscribe(self, listener: PhaseListener) -> Callable[[], None]:
        """Register `listener`; returns a function that unregisters it"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: PhaseEvent) -> int:
        """Deliver to every listener; returns the number that succeeded"""
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception("Phase listener %r failed on %s", listener, event.phase.value)
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
