"""
Simulator configuration and presets.

A configuration is supplied by the caller, is read-only to the engine and
only takes effect when a heap is (re)initialized.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .errors import ConfigurationError


class CollectorKind(Enum):
    """Collector strategies the engine can simulate"""
    NON_MOVING = "non-moving"      # Mark-sweep, cells never move
    COPYING = "copying"            # Two-space (from/to) copying
    GENERATIONAL = "generational"  # Eden, two survivors, tenured
    REGION_BASED = "region-based"  # Retypeable fixed-size regions (G1-like)


# Discrete choices offered to the control layer
GRID_SIZE_OPTIONS = (10, 12, 15, 18, 20)
TICK_INTERVAL_OPTIONS_MS = (500, 1000, 1500, 2000, 3000)
REGION_GRID_OPTIONS = (4, 5, 6)
REGION_SIZE_OPTIONS = (3, 4, 5)


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration parameters for one simulator instance"""

    collector: CollectorKind = CollectorKind.NON_MOVING

    # Flat-grid collectors
    grid_size: int = 15

    # Region-based collector
    region_grid: int = 5           # Regions per side
    region_size: int = 4           # Cells per region side
    max_eden_regions: int = 4
    max_tenured_regions: int = 2

    # Generational collector
    tenure_threshold: int = 3
    eden_fraction: float = 0.2     # Share of columns given to eden
    tenured_fraction: float = 0.5  # Share of columns given to tenured

    # Pacing and termination
    tick_interval_ms: int = 1000
    max_gc_cycles: int = 4         # Only applies to non-moving and copying

    # None draws fresh OS entropy on every initialization
    seed: Optional[int] = None

    @property
    def total_cells(self) -> int:
        if self.collector == CollectorKind.REGION_BASED:
            return self.region_grid ** 2 * self.region_size ** 2
        return self.grid_size ** 2

    def validate(self) -> None:
        """Raise ConfigurationError if this configuration cannot be simulated"""
        if not isinstance(self.collector, CollectorKind):
            raise ConfigurationError(
                f"Unknown collector: {self.collector!r}",
                help_text=f"expected one of {[k.value for k in CollectorKind]}"
            )
        if self.tick_interval_ms <= 0:
            raise ConfigurationError(
                f"tick_interval_ms must be positive, got {self.tick_interval_ms}"
            )
        if self.max_gc_cycles < 1:
            raise ConfigurationError(
                f"max_gc_cycles must be at least 1, got {self.max_gc_cycles}"
            )

        if self.collector == CollectorKind.REGION_BASED:
            self._validate_regions()
        else:
            self._validate_grid()

    def _validate_grid(self):
        if self.grid_size < 2:
            raise ConfigurationError(
                f"grid_size must be at least 2, got {self.grid_size}",
                help_text=f"typical values are {GRID_SIZE_OPTIONS}"
            )
        if self.collector != CollectorKind.GENERATIONAL:
            return

        if self.tenure_threshold < 1:
            raise ConfigurationError(
                f"tenure_threshold must be at least 1, got {self.tenure_threshold}"
            )
        if not 0.0 < self.eden_fraction < 1.0 or not 0.0 < self.tenured_fraction < 1.0:
            raise ConfigurationError("eden_fraction and tenured_fraction must lie in (0, 1)")

        eden_cols = int(self.grid_size * self.eden_fraction)
        tenured_cols = int(self.grid_size * self.tenured_fraction)
        survivor_cols = self.grid_size - eden_cols - tenured_cols
        if eden_cols < 1 or tenured_cols < 1 or survivor_cols < 1:
            raise ConfigurationError(
                f"grid_size {self.grid_size} is too small for the generational layout "
                f"(eden={eden_cols}, survivor={survivor_cols}, tenured={tenured_cols} columns)",
                help_text="use a larger grid or adjust eden_fraction/tenured_fraction"
            )

    def _validate_regions(self):
        if self.region_grid < 1 or self.region_size < 1:
            raise ConfigurationError(
                f"region_grid and region_size must be positive, "
                f"got {self.region_grid} and {self.region_size}"
            )
        if self.max_eden_regions < 1:
            raise ConfigurationError(
                f"max_eden_regions must be at least 1, got {self.max_eden_regions}"
            )
        if self.max_tenured_regions < 1:
            raise ConfigurationError(
                f"max_tenured_regions must be at least 1, got {self.max_tenured_regions}"
            )

    def with_changes(self, **changes) -> 'SimulatorConfig':
        """Return a validated copy with the given fields replaced"""
        unknown = set(changes) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown configuration fields: {sorted(unknown)}")

        collector = changes.get("collector")
        if isinstance(collector, str):
            changes["collector"] = CollectorKind(collector)

        updated = dataclasses.replace(self, **changes)
        updated.validate()
        return updated


# =============================================================================
# DEFAULTS PER COLLECTOR
# =============================================================================

DEFAULT_NON_MOVING = SimulatorConfig(
    collector=CollectorKind.NON_MOVING,
    grid_size=15,
    tick_interval_ms=1000
)

DEFAULT_COPYING = SimulatorConfig(
    collector=CollectorKind.COPYING,
    grid_size=15,
    tick_interval_ms=600
)

DEFAULT_GENERATIONAL = SimulatorConfig(
    collector=CollectorKind.GENERATIONAL,
    grid_size=15,
    tick_interval_ms=600,
    tenure_threshold=3
)

DEFAULT_REGION_BASED = SimulatorConfig(
    collector=CollectorKind.REGION_BASED,
    region_grid=5,
    region_size=4,
    max_eden_regions=4,
    tick_interval_ms=800
)

DEFAULT_CONFIGS: Dict[CollectorKind, SimulatorConfig] = {
    CollectorKind.NON_MOVING: DEFAULT_NON_MOVING,
    CollectorKind.COPYING: DEFAULT_COPYING,
    CollectorKind.GENERATIONAL: DEFAULT_GENERATIONAL,
    CollectorKind.REGION_BASED: DEFAULT_REGION_BASED,
}


def default_config(collector: CollectorKind, **overrides) -> SimulatorConfig:
    """Defaults for a collector, optionally overridden"""
    if isinstance(collector, str):
        collector = CollectorKind(collector)
    base = DEFAULT_CONFIGS[collector]
    return base.with_changes(**overrides) if overrides else base
