"""
Non-moving mark-sweep collector.

Objects never move: the sweep frees garbage in place and leaves survivors
where they were allocated, so the heap fragments over time.
"""

from typing import Dict

from ..config import CollectorKind
from ..memory.cells import CellState, SpaceTag
from ..memory.churn import NON_MOVING_CHURN
from ..memory.spaces import build_single_space, group_spaces
from .base import CollectorStrategy, HeapState, Phase, PhaseHandler


# Allocation stops once fewer free cells than this remain
FULL_HEAP_FREE_CELLS = 10


class NonMovingCollector(CollectorStrategy):
    """
    ALLOCATING -> MARKING -> SWEEPING -> ALLOCATING | COMPLETE

    Every cell that survived an earlier sweep is marked again unconditionally;
    liveness is a per-cell flag, so once a cell survives it stays live.
    """

    kind = CollectorKind.NON_MOVING
    bounded = True
    hold_durations = {Phase.MARKING: 1500}

    def build_heap(self) -> HeapState:
        cells = build_single_space(self.config.grid_size)
        return HeapState(collector=self.kind, cells=cells, spaces=group_spaces(cells))

    def _build_handlers(self) -> Dict[Phase, PhaseHandler]:
        return {
            Phase.ALLOCATING: self._allocating,
            Phase.MARKING: self._sweep,
            Phase.SWEEPING: self._finish_sweep,
        }

    def _allocating(self, heap: HeapState) -> Phase:
        space = heap.space(SpaceTag.HEAP)
        if space.free_count < FULL_HEAP_FREE_CELLS:
            self._mark(space.cells)
            return Phase.MARKING

        self._allocate(heap, space.cells, NON_MOVING_CHURN)
        return Phase.ALLOCATING

    def _sweep(self, heap: HeapState) -> Phase:
        freed = 0
        for cell in heap.space(SpaceTag.HEAP):
            if cell.state == CellState.DEREFERENCED:
                cell.release()
                freed += 1
            elif cell.state == CellState.MARKED:
                cell.survive()
        self._record_freed(heap, freed)
        return Phase.SWEEPING

    def _finish_sweep(self, heap: HeapState) -> Phase:
        return self._complete_cycle(heap, "sweep")
