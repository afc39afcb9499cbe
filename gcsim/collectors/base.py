"""
Phase Driver base for gcsim collectors

Every collector is a finite state machine advanced one transition at a time
by `CollectorStrategy.step`. The strategies share the heap representation,
the statistics record and the error handling defined here, and differ only
in their phase handlers.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

import numpy as np

from ..config import CollectorKind, SimulatorConfig
from ..errors import (
    Diagnostic, DiagnosticCode, NoAvailableSourceError, SimulationWarning
)
from ..memory.cells import CellState, MemoryCell, SpaceTag, count_states
from ..memory.churn import ChurnGenerator, make_rng
from ..memory.regions import Region
from ..memory.spaces import Space


logger = logging.getLogger(__name__)


class Phase(Enum):
    """Collector phases; each collector uses a subset"""
    ALLOCATING = "allocating"
    MARKING = "marking"
    SWEEPING = "sweeping"
    COPYING = "copying"
    SWAPPING = "swapping"
    COPYING_TO_SURVIVOR = "copying-to-survivor"
    COPYING_BETWEEN_SURVIVORS = "copying-between-survivors"
    MAJOR_GC_MARKING = "major-gc-marking"
    MAJOR_GC_COMPACTING = "major-gc-compacting"
    EVACUATING = "evacuating"
    MIXED_GC = "mixed-gc"
    COMPLETE = "complete"


# Phases during which the simulated application is paused
MUTATOR_PHASES = frozenset({Phase.ALLOCATING, Phase.COMPLETE})


@dataclass
class CycleRecord:
    """Summary of one completed collection"""
    cycle: int
    kind: str         # "sweep", "copy", "minor", "major", "evacuation", "mixed"
    step: int
    freed: int = 0
    copied: int = 0
    promoted: int = 0
    overflowed: int = 0


@dataclass
class CollectionStats:
    """Running totals for one heap"""
    objects_allocated: int = 0
    objects_dereferenced: int = 0
    objects_freed: int = 0
    objects_copied: int = 0
    objects_promoted: int = 0
    capacity_overflows: int = 0
    minor_collections: int = 0
    major_collections: int = 0
    history: Deque[CycleRecord] = field(default_factory=lambda: deque(maxlen=100))

    # Counts for the collection in progress, folded into a CycleRecord
    pending: CycleRecord = field(default_factory=lambda: CycleRecord(cycle=0, kind="", step=0))

    def close_cycle(self, cycle: int, kind: str, step: int) -> CycleRecord:
        record = CycleRecord(
            cycle=cycle,
            kind=kind,
            step=step,
            freed=self.pending.freed,
            copied=self.pending.copied,
            promoted=self.pending.promoted,
            overflowed=self.pending.overflowed
        )
        self.history.append(record)
        self.pending = CycleRecord(cycle=0, kind="", step=0)
        return record

    def as_dict(self) -> Dict[str, int]:
        return {
            'objects_allocated': self.objects_allocated,
            'objects_dereferenced': self.objects_dereferenced,
            'objects_freed': self.objects_freed,
            'objects_copied': self.objects_copied,
            'objects_promoted': self.objects_promoted,
            'capacity_overflows': self.capacity_overflows,
            'minor_collections': self.minor_collections,
            'major_collections': self.major_collections,
        }


@dataclass
class HeapState:
    """
    The complete mutable state of one simulated heap.

    Created by `CollectorStrategy.initialize`, mutated only by the strategy's
    phase handlers and replaced wholesale on reinitialization.
    """
    collector: CollectorKind
    cells: List[MemoryCell]
    spaces: Dict[SpaceTag, Space] = field(default_factory=dict)
    regions: List[Region] = field(default_factory=list)
    phase: Phase = Phase.ALLOCATING
    current_step: int = 0
    gc_cycles: int = 0
    active_space: Optional[SpaceTag] = None
    active_survivor_space: Optional[SpaceTag] = None
    current_eden_region_count: Optional[int] = None
    force_minor_collection: bool = False
    stats: CollectionStats = field(default_factory=CollectionStats)

    @property
    def total_cells(self) -> int:
        return len(self.cells)

    @property
    def is_complete(self) -> bool:
        return self.phase == Phase.COMPLETE

    def space(self, tag: SpaceTag) -> Space:
        """Look up a space, raising NoAvailableSourceError when absent"""
        try:
            return self.spaces[tag]
        except KeyError:
            raise NoAvailableSourceError(
                f"Heap has no {tag.value} space",
                step=self.current_step,
                phase=self.phase.value,
                help_text="the configured layout is too small for this collector"
            ) from None

    def state_counts(self) -> Dict[CellState, int]:
        return count_states(self.cells)

    @property
    def free_count(self) -> int:
        return sum(1 for cell in self.cells if cell.state == CellState.FREE)


@dataclass
class StepResult:
    """Outcome of one call to `CollectorStrategy.step`"""
    previous_phase: Phase
    phase: Phase
    advanced: bool
    hold_ms: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def phase_changed(self) -> bool:
        return self.previous_phase != self.phase


PhaseHandler = Callable[[HeapState], Phase]


class CollectorStrategy(ABC):
    """
    Base class for the four collector state machines.

    Subclasses build the heap layout and provide one handler per phase. A
    handler performs the work of leaving its phase and returns the phase to
    enter. Handlers must validate every space or region they need before
    touching any cell, so that a NoAvailableSourceError leaves the heap
    exactly as it was.
    """

    kind: CollectorKind
    bounded: bool = False
    hold_durations: Dict[Phase, int] = {}

    def __init__(self, config: SimulatorConfig, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.rng = rng if rng is not None else make_rng(config.seed)
        self.churn = ChurnGenerator(self.rng)
        self._handlers: Dict[Phase, PhaseHandler] = self._build_handlers()
        self._pending: List[Diagnostic] = []

    @abstractmethod
    def build_heap(self) -> HeapState:
        """Create the all-free heap for this collector's layout"""

    @abstractmethod
    def _build_handlers(self) -> Dict[Phase, PhaseHandler]:
        """Map each non-terminal phase to the handler that leaves it"""

    def initialize(self) -> HeapState:
        heap = self.build_heap()
        logger.debug("Initialized %s heap with %d cells", self.kind.value, heap.total_cells)
        return heap

    def hold_for(self, phase: Phase) -> int:
        """Visual hold in milliseconds imposed after entering `phase`"""
        return self.hold_durations.get(phase, 0)

    def step(self, heap: HeapState) -> StepResult:
        """Advance the heap by one transition"""
        previous = heap.phase
        handler = self._handlers.get(previous)

        if handler is None:
            notice = SimulationWarning(
                f"Step ignored: {self.kind.value} collector is {previous.value}",
                DiagnosticCode.REDUNDANT_STEP,
                step=heap.current_step,
                phase=previous.value,
                severity="info"
            )
            return StepResult(previous, previous, advanced=False, diagnostics=[notice.diagnostic])

        self._pending = []
        try:
            next_phase = handler(heap)
        except NoAvailableSourceError as exc:
            logger.warning("Transition out of %s aborted: %s", previous.value, exc.diagnostic.message)
            return StepResult(previous, previous, advanced=False, diagnostics=[exc.diagnostic])

        heap.phase = next_phase
        heap.current_step += 1

        hold_ms = self.hold_for(next_phase) if next_phase != previous else 0
        if next_phase != previous:
            logger.debug("%s: %s -> %s (step %d)", self.kind.value, previous.value,
                         next_phase.value, heap.current_step)

        return StepResult(previous, next_phase, advanced=True, hold_ms=hold_ms,
                          diagnostics=list(self._pending))

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _allocate(self, heap: HeapState, scope, profile):
        result = self.churn.churn(list(scope), profile)
        heap.stats.objects_allocated += len(result.allocated)
        heap.stats.objects_dereferenced += len(result.dereferenced)
        return result

    def _mark(self, cells) -> int:
        """Apply the shared mark rule; returns the number of cells marked"""
        marked = 0
        for cell in cells:
            if cell.is_markable:
                cell.mark()
                marked += 1
        return marked

    def _record_overflow(self, heap: HeapState, dropped: int, destination: str):
        """Count live objects dropped for lack of a destination cell"""
        if dropped <= 0:
            return
        heap.stats.capacity_overflows += dropped
        heap.stats.pending.overflowed += dropped
        warning = SimulationWarning(
            f"{dropped} live object(s) dropped: {destination} has no free cell",
            DiagnosticCode.CAPACITY_OVERFLOW,
            step=heap.current_step,
            phase=heap.phase.value
        )
        self._pending.append(warning.diagnostic)
        logger.warning("Capacity overflow in %s collector: %s",
                       self.kind.value, warning.diagnostic.message)

    def _record_freed(self, heap: HeapState, count: int):
        heap.stats.objects_freed += count
        heap.stats.pending.freed += count

    def _record_copied(self, heap: HeapState, count: int):
        heap.stats.objects_copied += count
        heap.stats.pending.copied += count

    def _record_promoted(self, heap: HeapState, count: int):
        heap.stats.objects_promoted += count
        heap.stats.pending.promoted += count

    def _complete_cycle(self, heap: HeapState, kind: str) -> Phase:
        """Count a finished collection and pick the phase that follows it"""
        heap.gc_cycles += 1
        heap.stats.close_cycle(heap.gc_cycles, kind, heap.current_step + 1)
        if self.bounded and heap.gc_cycles >= self.config.max_gc_cycles:
            return Phase.COMPLETE
        return Phase.ALLOCATING
