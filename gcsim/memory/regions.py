"""
Region Model for gcsim

The region-based collector divides the heap into fixed-size regions whose
role is assigned at runtime. A region is created once, when the heap is
initialized, and only its type changes afterwards.
"""

from enum import Enum
from typing import List, Optional

import numpy as np

from .cells import CellGroup, MemoryCell, SpaceTag, make_cells


class RegionType(Enum):
    """Runtime roles of a region"""
    UNASSIGNED = "unassigned"
    EDEN = "eden"
    SURVIVOR_FROM = "survivor-from"
    SURVIVOR_TO = "survivor-to"
    TENURED = "tenured"
    HUMONGOUS = "humongous"


# Seed roles, assigned in this order while regions remain
SEED_TYPES = (
    RegionType.EDEN,
    RegionType.SURVIVOR_FROM,
    RegionType.SURVIVOR_TO,
    RegionType.TENURED,
)


class Region(CellGroup):
    """A fixed-size, retypeable group of cells"""

    def __init__(self, region_id: int, cells: List[MemoryCell],
                 region_type: RegionType = RegionType.UNASSIGNED):
        super().__init__(cells)
        self.id = region_id
        self.type = region_type

    def retype(self, region_type: RegionType, clear: bool = True):
        """Change the role of this region, freeing its cells by default"""
        self.type = region_type
        if clear:
            self.clear()

    def __repr__(self) -> str:
        return f"Region({self.id}, {self.type.value}, occupancy={self.occupancy}%)"


def build_regions(region_grid: int, region_size: int,
                  rng: np.random.Generator) -> List[Region]:
    """
    Create `region_grid**2` regions of `region_size**2` free cells.

    Cell ids are global: region `i` owns ids `i*cells_per_region` onwards.
    The seed roles are placed on distinct regions drawn from `rng`; a grid
    too small for all of them gets the leading seeds only.
    """
    total_regions = region_grid * region_grid
    cells_per_region = region_size * region_size

    regions = [
        Region(
            region_id,
            make_cells(cells_per_region, SpaceTag.REGION,
                       start_id=region_id * cells_per_region, region_id=region_id)
        )
        for region_id in range(total_regions)
    ]

    seed_count = min(len(SEED_TYPES), total_regions)
    chosen = rng.choice(total_regions, size=seed_count, replace=False)
    for region_type, index in zip(SEED_TYPES, chosen):
        regions[int(index)].type = region_type

    return regions


def regions_of(regions: List[Region], region_type: RegionType) -> List[Region]:
    return [region for region in regions if region.type == region_type]


def first_region(regions: List[Region], region_type: RegionType) -> Optional[Region]:
    for region in regions:
        if region.type == region_type:
            return region
    return None
