"""
gcsim collectors

The four collector state machines and a factory that picks one from a
configuration.
"""

from typing import Dict, Optional, Type

import numpy as np

from ..config import CollectorKind, SimulatorConfig
from .base import (
    Phase, MUTATOR_PHASES, CycleRecord, CollectionStats, HeapState, StepResult,
    CollectorStrategy
)
from .non_moving import NonMovingCollector
from .copying import CopyingCollector
from .generational import GenerationalCollector
from .region_based import RegionBasedCollector


COLLECTORS: Dict[CollectorKind, Type[CollectorStrategy]] = {
    CollectorKind.NON_MOVING: NonMovingCollector,
    CollectorKind.COPYING: CopyingCollector,
    CollectorKind.GENERATIONAL: GenerationalCollector,
    CollectorKind.REGION_BASED: RegionBasedCollector,
}


def create_collector(config: SimulatorConfig,
                     rng: Optional[np.random.Generator] = None) -> CollectorStrategy:
    """Instantiate the strategy selected by `config.collector`"""
    config.validate()
    return COLLECTORS[config.collector](config, rng)


__all__ = [
    # Phase driver
    'Phase', 'MUTATOR_PHASES', 'CycleRecord', 'CollectionStats', 'HeapState',
    'StepResult', 'CollectorStrategy',

    # Strategies
    'NonMovingCollector', 'CopyingCollector', 'GenerationalCollector',
    'RegionBasedCollector',

    # Factory
    'COLLECTORS', 'create_collector',
]
