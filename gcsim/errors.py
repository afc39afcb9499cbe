"""
Error handling for the gcsim engine.

Collectors never use exceptions for ordinary policy outcomes. Overflowing a
destination space, stepping during a hold or firing a stale timer are all
reported as diagnostics so callers can observe them. Exceptions are reserved
for conditions that abort an operation: a missing source space, an invalid
configuration, or a reconfiguration attempt while the auto-run loop is armed.
"""

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Iterator, List, Optional


class DiagnosticCode(Enum):
    """Observable outcomes of engine operations"""
    CAPACITY_OVERFLOW = "capacity-overflow"      # Live object dropped, no destination cell
    NO_AVAILABLE_SOURCE = "no-available-source"  # Required space/region missing
    STALE_TRANSITION = "stale-transition"        # Timer fired after reset/pause
    REDUNDANT_STEP = "redundant-step"            # Step during hold, completion or auto-run
    INVALID_CONFIGURATION = "invalid-configuration"
    SIMULATOR_BUSY = "simulator-busy"


@dataclass
class Diagnostic:
    """A single engine diagnostic (error, warning or info)"""
    message: str
    code: DiagnosticCode
    severity: str  # "error", "warning", "info"
    step: Optional[int] = None
    phase: Optional[str] = None
    help_text: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        result = f"{self.severity.upper()}[{self.code.value}]: {self.message}\n"
        if self.step is not None or self.phase is not None:
            result += f"  --> step {self.step}, phase {self.phase}\n"
        if self.help_text:
            result += f"  help: {self.help_text}\n"
        return result


class SimulationError(Exception):
    """
    Base exception for fatal engine errors.

    Carries a diagnostic so that the failure can be logged and exposed the
    same way as non-fatal outcomes.
    """

    code = DiagnosticCode.INVALID_CONFIGURATION

    def __init__(
        self,
        message: str,
        step: Optional[int] = None,
        phase: Optional[str] = None,
        help_text: Optional[str] = None
    ):
        super().__init__(message)
        self.diagnostic = Diagnostic(
            message=message,
            code=self.code,
            severity="error",
            step=step,
            phase=phase,
            help_text=help_text
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


class ConfigurationError(SimulationError):
    """Raised when a configuration cannot host the requested collector"""
    code = DiagnosticCode.INVALID_CONFIGURATION


class NoAvailableSourceError(SimulationError):
    """
    Raised by a collector when a transition needs a space or region that
    does not exist in the current layout.

    The step that raised it is aborted before any cell is mutated and the
    heap stays in its current phase.
    """
    code = DiagnosticCode.NO_AVAILABLE_SOURCE


class SimulatorBusyError(SimulationError):
    """Raised when configuration is changed while the auto-run loop is armed"""
    code = DiagnosticCode.SIMULATOR_BUSY


class SimulationWarning:
    """
    A diagnostic that does not stop the simulation.
    """

    def __init__(
        self,
        message: str,
        code: DiagnosticCode,
        step: Optional[int] = None,
        phase: Optional[str] = None,
        severity: str = "warning"
    ):
        self.diagnostic = Diagnostic(
            message=message,
            code=code,
            severity=severity,
            step=step,
            phase=phase
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


class DiagnosticLog:
    """Bounded, queryable record of diagnostics emitted by one simulator"""

    def __init__(self, maxlen: int = 500):
        self._entries: Deque[Diagnostic] = deque(maxlen=maxlen)
        self._counts: Counter = Counter()

    def record(self, diagnostic: Diagnostic):
        self._entries.append(diagnostic)
        self._counts[diagnostic.code] += 1

    def extend(self, diagnostics: List[Diagnostic]):
        for diagnostic in diagnostics:
            self.record(diagnostic)

    def count(self, code: DiagnosticCode) -> int:
        """Total number of diagnostics ever recorded with this code"""
        return self._counts[code]

    def by_code(self, code: DiagnosticCode) -> List[Diagnostic]:
        return [d for d in self._entries if d.code == code]

    def errors(self) -> List[Diagnostic]:
        return [d for d in self._entries if d.severity == "error"]

    def counts(self) -> Dict[str, int]:
        return {code.value: n for code, n in self._counts.items()}

    def clear(self):
        self._entries.clear()
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._entries))
