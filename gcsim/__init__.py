"""
gcsim: an educational garbage collection simulator

Reproduces four collector strategies on a grid of memory cells, one
transition at a time: non-moving mark-sweep, two-space copying,
generational and region-based (G1-like) collection.

Author: xwest
"""

__version__ = "0.1.0"
__author__ = "xwest"

from .errors import (
    DiagnosticCode, Diagnostic, DiagnosticLog, SimulationError, ConfigurationError,
    NoAvailableSourceError, SimulatorBusyError, SimulationWarning
)
from .config import (
    CollectorKind, SimulatorConfig, DEFAULT_CONFIGS, default_config,
    GRID_SIZE_OPTIONS, TICK_INTERVAL_OPTIONS_MS, REGION_GRID_OPTIONS, REGION_SIZE_OPTIONS
)
from .memory import CellState, SpaceTag, MemoryCell, RegionType, Region, Space
from .collectors import (
    Phase, HeapState, StepResult, CollectionStats, CollectorStrategy,
    NonMovingCollector, CopyingCollector, GenerationalCollector, RegionBasedCollector,
    create_collector
)
from .snapshot import HeapSnapshot, CellView, RegionView
from .runtime import (
    Simulator, PhaseEvent, TimerService, ThreadingTimerService, VirtualTimerService
)

__all__ = [
    # Errors and diagnostics
    'DiagnosticCode', 'Diagnostic', 'DiagnosticLog', 'SimulationError',
    'ConfigurationError', 'NoAvailableSourceError', 'SimulatorBusyError',
    'SimulationWarning',

    # Configuration
    'CollectorKind', 'SimulatorConfig', 'DEFAULT_CONFIGS', 'default_config',
    'GRID_SIZE_OPTIONS', 'TICK_INTERVAL_OPTIONS_MS', 'REGION_GRID_OPTIONS',
    'REGION_SIZE_OPTIONS',

    # Memory model
    'CellState', 'SpaceTag', 'MemoryCell', 'RegionType', 'Region', 'Space',

    # Collectors
    'Phase', 'HeapState', 'StepResult', 'CollectionStats', 'CollectorStrategy',
    'NonMovingCollector', 'CopyingCollector', 'GenerationalCollector',
    'RegionBasedCollector', 'create_collector',

    # Snapshots
    'HeapSnapshot', 'CellView', 'RegionView',

    # Runtime
    'Simulator', 'PhaseEvent', 'TimerService', 'ThreadingTimerService',
    'VirtualTimerService',
]
