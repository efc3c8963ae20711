# core/types/status.py
"""
Core types and enums used throughout the library.
This module should not import from other library modules.
"""

from enum import Enum


class SchedulerState(Enum):
    """Lifecycle state of a CronScheduler"""

    IDLE = 'idle'  # Constructed, start() never called.

    WAITING = 'waiting'  # Blocked on the timer or on cancellation.

    RUNNING = 'running'  # Invoking the task.

    STOPPED = 'stopped'  # Cancellation observed, or start() raised.

    @property
    def is_active(self) -> bool:
        """Whether the scheduling loop is currently live."""
        return self in SCHEDULER_ACTIVE_STATES


SCHEDULER_ACTIVE_STATES: frozenset[SchedulerState] = frozenset({
    SchedulerState.WAITING,
    SchedulerState.RUNNING,
})
