"""
Cell Model for gcsim

The memory cell is the atomic unit of the simulated heap. Every collector
shares the same state vocabulary; they only differ in which transitions they
apply and when.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence


class CellState(Enum):
    """Lifecycle states of a memory cell"""
    FREE = "free"
    REFERENCED = "referenced"      # Allocated and reachable
    DEREFERENCED = "dereferenced"  # Allocated but garbage
    MARKED = "marked"              # Flagged live by the mark phase
    SURVIVED = "survived"          # Live object that outlived a collection
    COPYING = "copying"            # Transient: just relocated


# Numeric codes used by grid projections
STATE_CODES: Dict[CellState, int] = {state: code for code, state in enumerate(CellState)}

OCCUPIED_STATES = frozenset({CellState.REFERENCED, CellState.SURVIVED, CellState.MARKED})
LIVE_STATES = frozenset({CellState.REFERENCED, CellState.SURVIVED})


class SpaceTag(Enum):
    """Space membership of a cell; meaning depends on the collector"""
    HEAP = "heap"                    # Non-moving: single undivided heap
    FROM = "from"
    TO = "to"
    EDEN = "eden"
    SURVIVOR_FROM = "survivor-from"
    SURVIVOR_TO = "survivor-to"
    TENURED = "tenured"
    REGION = "region"                # Region-based: see region_id


@dataclass
class MemoryCell:
    """A single simulated memory cell"""
    id: int
    state: CellState = CellState.FREE
    survived_cycles: int = 0
    space: SpaceTag = SpaceTag.HEAP
    region_id: Optional[int] = None

    @property
    def is_free(self) -> bool:
        return self.state == CellState.FREE

    @property
    def is_occupied(self) -> bool:
        return self.state in OCCUPIED_STATES

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES

    @property
    def is_markable(self) -> bool:
        """Whether the shared mark rule flags this cell"""
        return (self.state == CellState.REFERENCED or
                (self.state == CellState.SURVIVED and self.survived_cycles > 0))

    def allocate(self):
        self.state = CellState.REFERENCED
        self.survived_cycles = 0

    def dereference(self):
        self.state = CellState.DEREFERENCED

    def mark(self):
        self.state = CellState.MARKED

    def survive(self):
        """Unmark a cell that lived through a collection"""
        self.state = CellState.SURVIVED
        self.survived_cycles += 1

    def receive(self, survived_cycles: int):
        """Become the destination of a relocated object"""
        self.state = CellState.COPYING
        self.survived_cycles = survived_cycles

    def settle(self):
        """Resolve a transient copy"""
        if self.state == CellState.COPYING:
            self.state = CellState.SURVIVED

    def release(self):
        self.state = CellState.FREE
        self.survived_cycles = 0


class CellGroup:
    """
    An ordered group of cells with pure occupancy queries.

    Spaces and regions are both cell groups; the group owns no state beyond
    the cells it references, so every query reflects the current heap.
    """

    def __init__(self, cells: Sequence[MemoryCell]):
        self.cells: List[MemoryCell] = list(cells)

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[MemoryCell]:
        return iter(self.cells)

    @property
    def total_cells(self) -> int:
        return len(self.cells)

    def cells_in(self, *states: CellState) -> List[MemoryCell]:
        wanted = set(states)
        return [cell for cell in self.cells if cell.state in wanted]

    def free_cells(self) -> List[MemoryCell]:
        return self.cells_in(CellState.FREE)

    @property
    def free_count(self) -> int:
        return sum(1 for cell in self.cells if cell.state == CellState.FREE)

    @property
    def occupied_count(self) -> int:
        return sum(1 for cell in self.cells if cell.is_occupied)

    @property
    def occupancy(self) -> int:
        """Occupied share as an integer percentage"""
        if not self.cells:
            return 0
        return round(100 * self.occupied_count / len(self.cells))

    @property
    def has_capacity(self) -> bool:
        return any(cell.state == CellState.FREE for cell in self.cells)

    def count(self, state: CellState) -> int:
        return sum(1 for cell in self.cells if cell.state == state)

    def state_counts(self) -> Dict[CellState, int]:
        return count_states(self.cells)

    def clear(self) -> int:
        """Free every cell; returns how many were not already free"""
        released = 0
        for cell in self.cells:
            if cell.state != CellState.FREE:
                released += 1
            cell.release()
        return released


def count_states(cells: Iterable[MemoryCell]) -> Dict[CellState, int]:
    """Per-state cell counts; every state is present, possibly with 0"""
    counts = Counter(cell.state for cell in cells)
    return {state: counts.get(state, 0) for state in CellState}


def make_cells(count: int, space: SpaceTag = SpaceTag.HEAP, start_id: int = 0,
               region_id: Optional[int] = None) -> List[MemoryCell]:
    """Create `count` free cells with consecutive ids"""
    return [
        MemoryCell(id=start_id + i, space=space, region_id=region_id)
        for i in range(count)
    ]
