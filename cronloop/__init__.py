"""cronloop - run a Python callable on a cron schedule until cancelled"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.scheduler import (
    CronScheduler,
    SchedulerStats,
    CancellationSignal,
    CancellationToken,
    Clock,
    SystemClock,
    CronEvaluator,
    RecurrenceEvaluator,
    iter_occurrences,
    next_occurrence,
)
from .core.models.schedule import ScheduleConfig
from .core.types.status import SchedulerState
from .core.errors import (
    CronLoopError,
    ConfigurationError,
    ExpressionError,
    ErrorCode,
    ValidationReport,
    MultipleValidationErrors,
)

__all__ = [
    # Core
    'CronScheduler',
    'SchedulerStats',
    'SchedulerState',
    'ScheduleConfig',
    # Collaborators
    'CancellationSignal',
    'CancellationToken',
    'Clock',
    'SystemClock',
    'CronEvaluator',
    'RecurrenceEvaluator',
    'iter_occurrences',
    'next_occurrence',
    # Errors
    'CronLoopError',
    'ConfigurationError',
    'ExpressionError',
    'ErrorCode',
    'ValidationReport',
    'MultipleValidationErrors',
]
