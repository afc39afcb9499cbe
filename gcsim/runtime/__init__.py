"""
gcsim runtime

Timers, the step scheduler, phase notifications and the Simulator facade.
"""

from .timers import TimerHandle, TimerService, ThreadingTimerService, VirtualTimerService
from .scheduler import Scheduler, TimerKind
from .notifications import PhaseEvent, PhaseListener, PhaseNotifier, PHASE_MESSAGES, describe
from .simulator import Simulator

__all__ = [
    # Timers
    'TimerHandle', 'TimerService', 'ThreadingTimerService', 'VirtualTimerService',

    # Scheduling
    'Scheduler', 'TimerKind',

    # Notifications
    'PhaseEvent', 'PhaseListener', 'PhaseNotifier', 'PHASE_MESSAGES', 'describe',

    # Facade
    'Simulator',
]
