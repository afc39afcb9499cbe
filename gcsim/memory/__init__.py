"""
gcsim memory model

Cells, spaces, regions and the churn generator shared by every collector.
"""

from .cells import (
    CellState, SpaceTag, MemoryCell, CellGroup, STATE_CODES, OCCUPIED_STATES,
    LIVE_STATES, count_states, make_cells
)
from .spaces import (
    Space, group_spaces, build_single_space, build_semispaces,
    build_generational, generational_columns
)
from .regions import RegionType, Region, SEED_TYPES, build_regions, regions_of, first_region
from .churn import (
    ChurnProfile, ChurnGenerator, ChurnResult, make_rng,
    NON_MOVING_CHURN, COPYING_CHURN, EDEN_CHURN, REGION_EDEN_CHURN,
    REGION_SURVIVOR_CHURN
)

__all__ = [
    # Cells
    'CellState', 'SpaceTag', 'MemoryCell', 'CellGroup', 'STATE_CODES',
    'OCCUPIED_STATES', 'LIVE_STATES', 'count_states', 'make_cells',

    # Spaces
    'Space', 'group_spaces', 'build_single_space', 'build_semispaces',
    'build_generational', 'generational_columns',

    # Regions
    'RegionType', 'Region', 'SEED_TYPES', 'build_regions', 'regions_of', 'first_region',

    # Churn
    'ChurnProfile', 'ChurnGenerator', 'ChurnResult', 'make_rng',
    'NON_MOVING_CHURN', 'COPYING_CHURN', 'EDEN_CHURN', 'REGION_EDEN_CHURN',
    'REGION_SURVIVOR_CHURN',
]
