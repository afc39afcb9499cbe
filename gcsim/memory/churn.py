"""
Churn Generator for gcsim

Simulates the mutator: each allocation step references a bounded random
number of free cells and then drops references to a random subset of the
referenced population. Liveness is a per-cell flag; no object graph exists.

All randomness flows through an injected numpy Generator so that a seeded
simulator replays the exact same allocation and de-reference sequence.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .cells import CellState, MemoryCell


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create the random source for one heap"""
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class ChurnProfile:
    """
    Allocation and mortality parameters for one collector's scope.

    `dereference_range` is an inclusive count range. When
    `dereference_fraction` is set it takes precedence: a uniform share of the
    referenced population is dropped, keeping at least `min_live_fraction`
    of it (and at least one cell) alive.
    """
    name: str
    allocate_range: Tuple[int, int]
    dereference_range: Tuple[int, int] = (1, 3)
    dereference_fraction: Optional[Tuple[float, float]] = None
    min_live_fraction: float = 0.0


NON_MOVING_CHURN = ChurnProfile("non-moving", allocate_range=(3, 5), dereference_range=(1, 3))
COPYING_CHURN = ChurnProfile("copying", allocate_range=(3, 5), dereference_range=(1, 3))
EDEN_CHURN = ChurnProfile("generational-eden", allocate_range=(4, 6), dereference_range=(2, 5))
REGION_EDEN_CHURN = ChurnProfile(
    "region-eden",
    allocate_range=(3, 5),
    dereference_fraction=(0.55, 0.85),
    min_live_fraction=0.2
)

# Survivor regions only lose objects; nothing is allocated there
REGION_SURVIVOR_CHURN = ChurnProfile(
    "region-survivor",
    allocate_range=(0, 0),
    dereference_fraction=(0.30, 0.40)
)


@dataclass
class ChurnResult:
    """Cells touched by one churn pass"""
    allocated: List[MemoryCell]
    dereferenced: List[MemoryCell]


class ChurnGenerator:
    """Randomized allocation and de-reference over a designated scope"""

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    def draw(self, low: int, high: int) -> int:
        """Uniform integer in [low, high]"""
        return int(self.rng.integers(low, high, endpoint=True))

    def uniform(self, low: float, high: float) -> float:
        return float(self.rng.uniform(low, high))

    def sample(self, cells: Sequence[MemoryCell], count: int) -> List[MemoryCell]:
        """Pick `count` cells uniformly without replacement, in draw order"""
        count = min(count, len(cells))
        if count <= 0:
            return []
        indices = self.rng.choice(len(cells), size=count, replace=False)
        return [cells[int(i)] for i in indices]

    def pick_index(self, size: int) -> int:
        return int(self.rng.integers(0, size))

    def allocate(self, scope: Sequence[MemoryCell], count: int) -> List[MemoryCell]:
        """Reference the first `count` free cells of the scope in index order"""
        allocated = []
        for cell in scope:
            if len(allocated) >= count:
                break
            if cell.state == CellState.FREE:
                cell.allocate()
                allocated.append(cell)
        return allocated

    def dereference_count(self, referenced: int, profile: ChurnProfile) -> int:
        if profile.dereference_fraction is None:
            low, high = profile.dereference_range
            return min(self.draw(low, high), referenced)

        min_alive = max(1, int(np.ceil(referenced * profile.min_live_fraction)))
        max_to_drop = max(0, referenced - min_alive)
        share = self.uniform(*profile.dereference_fraction)
        return min(max_to_drop, int(referenced * share))

    def churn(self, scope: Sequence[MemoryCell], profile: ChurnProfile) -> ChurnResult:
        """
        Run one allocation step over `scope`.

        Allocates `min(draw, free)` cells and then drops references from the
        scope's whole referenced population. Cells outside `scope` are never
        read or written.
        """
        free = sum(1 for cell in scope if cell.state == CellState.FREE)
        if free == 0:
            return ChurnResult(allocated=[], dereferenced=[])

        low, high = profile.allocate_range
        allocated = self.allocate(scope, min(self.draw(low, high), free))

        referenced = [cell for cell in scope if cell.state == CellState.REFERENCED]
        victims = self.sample(referenced, self.dereference_count(len(referenced), profile))
        for cell in victims:
            cell.dereference()

        return ChurnResult(allocated=allocated, dereferenced=victims)

    def decay(self, scope: Sequence[MemoryCell], profile: ChurnProfile) -> List[MemoryCell]:
        """Drop references to a share of the live cells of `scope`, allocating nothing"""
        live = [cell for cell in scope if cell.is_live]
        if not live:
            return []

        victims = self.sample(live, self.dereference_count(len(live), profile))
        for cell in victims:
            cell.dereference()
        return victims
