"""
Read-only snapshots of a simulated heap.

A snapshot is detached from the live heap: later steps never change it, and
it may be handed to another thread for rendering.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .collectors.base import MUTATOR_PHASES, HeapState, Phase
from .config import CollectorKind, SimulatorConfig
from .memory.cells import STATE_CODES, CellState, MemoryCell, SpaceTag
from .memory.regions import Region, RegionType


@dataclass(frozen=True)
class CellView:
    id: int
    state: CellState
    survived_cycles: int
    space: SpaceTag
    region_id: Optional[int] = None

    @classmethod
    def of(cls, cell: MemoryCell) -> 'CellView':
        return cls(cell.id, cell.state, cell.survived_cycles, cell.space, cell.region_id)


@dataclass(frozen=True)
class RegionView:
    id: int
    type: RegionType
    occupancy: int
    cell_ids: Tuple[int, ...]

    @classmethod
    def of(cls, region: Region) -> 'RegionView':
        return cls(region.id, region.type, region.occupancy,
                   tuple(cell.id for cell in region.cells))


@dataclass(frozen=True)
class HeapSnapshot:
    """Immutable copy of a heap and its scheduling status"""
    collector: CollectorKind
    phase: Phase
    current_step: int
    gc_cycles: int
    cells: Tuple[CellView, ...]
    regions: Tuple[RegionView, ...] = ()
    active_space: Optional[SpaceTag] = None
    active_survivor_space: Optional[SpaceTag] = None
    current_eden_region_count: Optional[int] = None
    holding: bool = False
    running: bool = False
    grid_size: int = 0
    region_grid: int = 0
    region_size: int = 0
    stats: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def capture(cls, heap: HeapState, config: SimulatorConfig,
                holding: bool = False, running: bool = False) -> 'HeapSnapshot':
        return cls(
            collector=heap.collector,
            phase=heap.phase,
            current_step=heap.current_step,
            gc_cycles=heap.gc_cycles,
            cells=tuple(CellView.of(cell) for cell in heap.cells),
            regions=tuple(RegionView.of(region) for region in heap.regions),
            active_space=heap.active_space,
            active_survivor_space=heap.active_survivor_space,
            current_eden_region_count=heap.current_eden_region_count,
            holding=holding,
            running=running,
            grid_size=config.grid_size,
            region_grid=config.region_grid,
            region_size=config.region_size,
            stats=heap.stats.as_dict()
        )

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    @property
    def total_cells(self) -> int:
        return len(self.cells)

    @property
    def stop_the_world(self) -> bool:
        """True while a collection phase pauses the simulated application"""
        return self.phase not in MUTATOR_PHASES

    @property
    def is_complete(self) -> bool:
        return self.phase == Phase.COMPLETE

    @property
    def capacity_overflows(self) -> int:
        return self.stats.get('capacity_overflows', 0)

    @property
    def state_counts(self) -> Dict[CellState, int]:
        counts = {state: 0 for state in CellState}
        for cell in self.cells:
            counts[cell.state] += 1
        return counts

    def cells_in_space(self, tag: SpaceTag) -> Tuple[CellView, ...]:
        return tuple(cell for cell in self.cells if cell.space == tag)

    def region(self, region_id: int) -> RegionView:
        return self.regions[region_id]

    def regions_of(self, region_type: RegionType) -> Tuple[RegionView, ...]:
        return tuple(region for region in self.regions if region.type == region_type)

    # ------------------------------------------------------------------
    # Grid projections
    # ------------------------------------------------------------------

    def _project(self, values: np.ndarray) -> np.ndarray:
        """Lay per-cell values out as the square grid shown to users"""
        if self.collector != CollectorKind.REGION_BASED:
            return values.reshape(self.grid_size, self.grid_size)

        side = self.region_grid * self.region_size
        grid = np.zeros((side, side), dtype=values.dtype)
        per_region = self.region_size * self.region_size
        for region in self.regions:
            top = (region.id // self.region_grid) * self.region_size
            left = (region.id % self.region_grid) * self.region_size
            block = values[region.id * per_region:(region.id + 1) * per_region]
            grid[top:top + self.region_size, left:left + self.region_size] = \
                block.reshape(self.region_size, self.region_size)
        return grid

    def state_grid(self) -> np.ndarray:
        """2-D array of `STATE_CODES`; regions appear as square blocks"""
        codes = np.array([STATE_CODES[cell.state] for cell in self.cells], dtype=np.int8)
        return self._project(codes)

    def age_grid(self, cap: int = 4) -> np.ndarray:
        """2-D array of survival counts, clipped at `cap`; free cells read 0"""
        ages = np.array(
            [0 if cell.state == CellState.FREE else cell.survived_cycles for cell in self.cells],
            dtype=np.int32
        )
        return self._project(np.minimum(ages, cap))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'collector': self.collector.value,
            'phase': self.phase.value,
            'current_step': self.current_step,
            'gc_cycles': self.gc_cycles,
            'active_space': self.active_space.value if self.active_space else None,
            'active_survivor_space': (
                self.active_survivor_space.value if self.active_survivor_space else None
            ),
            'current_eden_region_count': self.current_eden_region_count,
            'holding': self.holding,
            'running': self.running,
            'stop_the_world': self.stop_the_world,
            'state_counts': {state.value: n for state, n in self.state_counts.items()},
            'stats': dict(self.stats),
            'cells': [
                {
                    'id': cell.id,
                    'state': cell.state.value,
                    'survived_cycles': cell.survived_cycles,
                    'space': cell.space.value,
                    'region_id': cell.region_id,
                }
                for cell in self.cells
            ],
            'regions': [
                {
                    'id': region.id,
                    'type': region.type.value,
                    'occupancy': region.occupancy,
                }
                for region in self.regions
            ],
        }
