"""
Generational collector.

Young objects are allocated in eden and copied into the active survivor
space by minor collections; objects that age past the tenure threshold are
promoted to tenured. When tenured is exhausted a major collection compacts
it instead of running the minor path.

Minor path:
    ALLOCATING -> MARKING -> COPYING_TO_SURVIVOR -> COPYING_BETWEEN_SURVIVORS
               -> SWAPPING -> ALLOCATING
Major path:
    ALLOCATING -> MAJOR_GC_MARKING -> MAJOR_GC_COMPACTING -> ALLOCATING
"""

from typing import Dict, Iterator, List, Optional

from ..config import CollectorKind
from ..memory.cells import CellState, MemoryCell, SpaceTag
from ..memory.churn import EDEN_CHURN
from ..memory.spaces import Space, build_generational, group_spaces
from .base import CollectorStrategy, HeapState, Phase, PhaseHandler


# Eden counts as full once fewer free cells than this remain
EDEN_MIN_FREE_CELLS = 3

# Share of live cells per space that die between collections
EDEN_MORTALITY = 0.25
SURVIVOR_MORTALITY = 0.20
TENURED_MORTALITY = 0.12

SURVIVOR_SPACES = (SpaceTag.SURVIVOR_FROM, SpaceTag.SURVIVOR_TO)


def other_survivor(tag: SpaceTag) -> SpaceTag:
    return SpaceTag.SURVIVOR_TO if tag == SpaceTag.SURVIVOR_FROM else SpaceTag.SURVIVOR_FROM


def _take(free: Iterator[MemoryCell]) -> Optional[MemoryCell]:
    return next(free, None)


class GenerationalCollector(CollectorStrategy):
    """Eden / survivor-from / survivor-to / tenured collector with major GC"""

    kind = CollectorKind.GENERATIONAL
    bounded = False
    hold_durations = {
        Phase.MARKING: 1500,
        Phase.COPYING_TO_SURVIVOR: 800,
        Phase.COPYING_BETWEEN_SURVIVORS: 800,
        Phase.MAJOR_GC_MARKING: 1500,
        Phase.MAJOR_GC_COMPACTING: 1000,
    }

    def build_heap(self) -> HeapState:
        cells = build_generational(
            self.config.grid_size,
            self.config.eden_fraction,
            self.config.tenured_fraction
        )
        return HeapState(
            collector=self.kind,
            cells=cells,
            spaces=group_spaces(cells),
            active_survivor_space=SpaceTag.SURVIVOR_FROM
        )

    def _build_handlers(self) -> Dict[Phase, PhaseHandler]:
        return {
            Phase.ALLOCATING: self._allocating,
            Phase.MARKING: self._copy_to_survivor,
            Phase.COPYING_TO_SURVIVOR: self._copy_between_survivors,
            Phase.COPYING_BETWEEN_SURVIVORS: self._swap_survivors,
            Phase.SWAPPING: self._finish_minor,
            Phase.MAJOR_GC_MARKING: self._compact_tenured,
            Phase.MAJOR_GC_COMPACTING: self._finish_major,
        }

    # ------------------------------------------------------------------
    # Allocation and collection triggers
    # ------------------------------------------------------------------

    def _allocating(self, heap: HeapState) -> Phase:
        eden = heap.space(SpaceTag.EDEN)
        if eden.free_count >= EDEN_MIN_FREE_CELLS:
            self._allocate(heap, eden.cells, EDEN_CHURN)
            return Phase.ALLOCATING

        tenured = heap.space(SpaceTag.TENURED)
        for tag in SURVIVOR_SPACES:
            heap.space(tag)  # fail before any cell is touched

        if tenured.free_count == 0 and not heap.force_minor_collection:
            self._mark_tenured(tenured)
            return Phase.MAJOR_GC_MARKING

        heap.force_minor_collection = False
        self._mark_minor(heap)
        return Phase.MARKING

    def _mark_minor(self, heap: HeapState):
        """Apply per-space mortality, then mark what is still live"""
        for tag, rate in (
            (SpaceTag.EDEN, EDEN_MORTALITY),
            (SpaceTag.SURVIVOR_FROM, SURVIVOR_MORTALITY),
            (SpaceTag.SURVIVOR_TO, SURVIVOR_MORTALITY),
            (SpaceTag.TENURED, TENURED_MORTALITY),
        ):
            space = heap.space(tag)
            live = space.cells_in(CellState.REFERENCED, CellState.SURVIVED)
            victims = self.churn.sample(live, int(len(live) * rate))
            for cell in victims:
                cell.dereference()
            heap.stats.objects_dereferenced += len(victims)

        self._mark(heap.cells)

    # ------------------------------------------------------------------
    # Minor collection
    # ------------------------------------------------------------------

    def _copy_to_survivor(self, heap: HeapState) -> Phase:
        eden = heap.space(SpaceTag.EDEN)
        active = heap.space(heap.active_survivor_space)
        tenured = heap.space(SpaceTag.TENURED)

        survivor_slots = iter(active.free_cells())
        tenured_slots = iter(tenured.free_cells())
        copied = promoted = dropped = 0

        for obj in eden.cells_in(CellState.MARKED):
            destination = _take(survivor_slots)
            if destination is not None:
                destination.receive(obj.survived_cycles + 1)
                copied += 1
                continue

            destination = _take(tenured_slots)
            if destination is not None:
                destination.receive(0)
                promoted += 1
            else:
                dropped += 1

        garbage = eden.count(CellState.DEREFERENCED)
        eden.clear()

        self._record_copied(heap, copied)
        self._record_promoted(heap, promoted)
        self._record_freed(heap, garbage)
        self._record_overflow(heap, dropped, "survivor and tenured spaces")
        return Phase.COPYING_TO_SURVIVOR

    def _copy_between_survivors(self, heap: HeapState) -> Phase:
        source = heap.space(other_survivor(heap.active_survivor_space))
        active = heap.space(heap.active_survivor_space)
        tenured = heap.space(SpaceTag.TENURED)

        survivor_slots = iter(active.free_cells())
        tenured_slots = iter(tenured.free_cells())
        copied = promoted = dropped = 0
        threshold = self.config.tenure_threshold
        garbage = source.count(CellState.DEREFERENCED)

        for obj in source.cells_in(CellState.MARKED):
            age = obj.survived_cycles + 1
            if age >= threshold:
                destination = _take(tenured_slots)
                if destination is not None:
                    destination.receive(0)
                    promoted += 1
                    continue

            destination = _take(survivor_slots)
            if destination is not None:
                destination.receive(age)
                copied += 1
            else:
                dropped += 1

        # Vacated source cells stay visible as garbage until the swap
        for cell in source:
            if cell.state != CellState.FREE:
                cell.dereference()

        self._record_copied(heap, copied)
        self._record_promoted(heap, promoted)
        self._record_freed(heap, garbage)
        self._record_overflow(heap, dropped, "active survivor space")
        return Phase.COPYING_BETWEEN_SURVIVORS

    def _swap_survivors(self, heap: HeapState) -> Phase:
        inactive = heap.space(other_survivor(heap.active_survivor_space))

        for cell in heap.cells:
            if cell.state == CellState.COPYING:
                cell.settle()
            elif cell.state == CellState.MARKED:
                cell.state = CellState.SURVIVED

        inactive.clear()
        heap.active_survivor_space = other_survivor(heap.active_survivor_space)
        return Phase.SWAPPING

    def _finish_minor(self, heap: HeapState) -> Phase:
        heap.stats.minor_collections += 1
        return self._complete_cycle(heap, "minor")

    # ------------------------------------------------------------------
    # Major collection
    # ------------------------------------------------------------------

    def _mark_tenured(self, tenured: Space):
        # Promoted cells carry survived_cycles == 0, so the shared mark rule
        # does not apply here: every surviving tenured cell is live.
        for cell in tenured.cells_in(CellState.SURVIVED):
            cell.mark()

    def _compact_tenured(self, heap: HeapState) -> Phase:
        tenured = heap.space(SpaceTag.TENURED)

        live = tenured.count(CellState.MARKED)
        garbage = tenured.count(CellState.DEREFERENCED)
        tenured.clear()

        packed: List[MemoryCell] = tenured.cells[:live]
        for cell in packed:
            cell.state = CellState.SURVIVED
            cell.survived_cycles = 0

        self._record_freed(heap, garbage)
        return Phase.MAJOR_GC_COMPACTING

    def _finish_major(self, heap: HeapState) -> Phase:
        heap.stats.major_collections += 1
        heap.force_minor_collection = True
        return self._complete_cycle(heap, "major")
