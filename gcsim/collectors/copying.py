"""
Two-space copying collector.

Allocation happens in the active semispace. A collection copies the live
cells into the other semispace, preserving their relative order, wipes the
active one and swaps roles.
"""

from typing import Dict

from ..config import CollectorKind
from ..memory.cells import CellState, SpaceTag
from ..memory.churn import COPYING_CHURN
from ..memory.spaces import build_semispaces, group_spaces
from .base import CollectorStrategy, HeapState, Phase, PhaseHandler


FULL_SPACE_FREE_CELLS = 5


def other_space(tag: SpaceTag) -> SpaceTag:
    return SpaceTag.TO if tag == SpaceTag.FROM else SpaceTag.FROM


class CopyingCollector(CollectorStrategy):
    """ALLOCATING -> MARKING -> COPYING -> SWAPPING -> ALLOCATING | COMPLETE"""

    kind = CollectorKind.COPYING
    bounded = True
    hold_durations = {
        Phase.MARKING: 1500,
        Phase.COPYING: 500,
        Phase.SWAPPING: 500,
    }

    def build_heap(self) -> HeapState:
        cells = build_semispaces(self.config.grid_size)
        return HeapState(
            collector=self.kind,
            cells=cells,
            spaces=group_spaces(cells),
            active_space=SpaceTag.FROM
        )

    def _build_handlers(self) -> Dict[Phase, PhaseHandler]:
        return {
            Phase.ALLOCATING: self._allocating,
            Phase.MARKING: self._copy,
            Phase.COPYING: self._swap,
            Phase.SWAPPING: self._finish_swap,
        }

    def _allocating(self, heap: HeapState) -> Phase:
        active = heap.space(heap.active_space)
        if active.free_count < FULL_SPACE_FREE_CELLS:
            self._mark(active.cells)
            return Phase.MARKING

        self._allocate(heap, active.cells, COPYING_CHURN)
        return Phase.ALLOCATING

    def _copy(self, heap: HeapState) -> Phase:
        source = heap.space(heap.active_space)
        target = heap.space(other_space(heap.active_space))

        survivors = source.cells_in(CellState.MARKED)
        target.clear()

        destinations = target.free_cells()
        copied = min(len(survivors), len(destinations))
        for obj, destination in zip(survivors, destinations):
            destination.receive(obj.survived_cycles + 1)

        self._record_copied(heap, copied)
        self._record_overflow(heap, len(survivors) - copied, f"{target.tag.value} space")

        garbage = source.count(CellState.DEREFERENCED)
        source.clear()
        self._record_freed(heap, garbage)
        return Phase.COPYING

    def _swap(self, heap: HeapState) -> Phase:
        for cell in heap.space(other_space(heap.active_space)):
            cell.settle()
        heap.active_space = other_space(heap.active_space)
        return Phase.SWAPPING

    def _finish_swap(self, heap: HeapState) -> Phase:
        return self._complete_cycle(heap, "copy")
