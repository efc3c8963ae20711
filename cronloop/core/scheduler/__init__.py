# cronloop/core/scheduler/__init__.py
"""
Scheduler module for running a task on a cron schedule.

Main components:
- CronScheduler: The compute-next / wait / invoke loop
- CancellationToken: Thread-safe one-way stop signal
- CronEvaluator: croniter-backed next occurrence calculation
- SystemClock: Wall-clock time and cancellable wait

Example usage:
    from cronloop.core.scheduler import CancellationToken, CronScheduler

    token = CancellationToken()
    scheduler = CronScheduler('*/5 * * * *', cleanup)
    await scheduler.start(token)
"""

from cronloop.core.scheduler.cancellation import CancellationSignal, CancellationToken
from cronloop.core.scheduler.clock import Clock, SystemClock
from cronloop.core.scheduler.evaluator import (
    CronEvaluator,
    RecurrenceEvaluator,
    iter_occurrences,
    next_occurrence,
)
from cronloop.core.scheduler.service import CronScheduler, SchedulerStats

__all__ = [
    'CronScheduler',
    'SchedulerStats',
    'CancellationSignal',
    'CancellationToken',
    'Clock',
    'SystemClock',
    'CronEvaluator',
    'RecurrenceEvaluator',
    'iter_occurrences',
    'next_occurrence',
]
