# cronloop/core/scheduler/service.py
from __future__ import annotations
import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Optional
from cronloop.core.defaults import DEFAULT_SCHEDULE_NAME, DEFAULT_TIMEZONE
from cronloop.core.logging import ScheduleLoggerAdapter, get_schedule_logger
from cronloop.core.scheduler.cancellation import CancellationSignal, CancellationToken
from cronloop.core.scheduler.clock import Clock, SystemClock
from cronloop.core.scheduler.evaluator import CronEvaluator, RecurrenceEvaluator
from cronloop.core.types.status import SchedulerState

if TYPE_CHECKING:
    from cronloop.core.models.schedule import ScheduleConfig


TaskFn = Callable[[], Any]
ErrorObserver = Callable[[Exception], None]


@dataclass
class SchedulerStats:
    invocations: int = 0
    failures: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    next_run_at: Optional[datetime] = None


class CronScheduler:
    """
    Runs a task every time a cron expression fires, until cancelled.

    Each pass of the loop:
    1. Evaluates the expression against the current time
    2. Waits for the occurrence (woken early by cancellation)
    3. Re-checks cancellation and, if still live, invokes the task

    Task failures are logged, handed to `on_error` and discarded; they never
    stop the loop. A malformed expression raises ExpressionError out of
    start(). Missed occurrences are skipped, never queued: after a slow task
    or a suspended process the task fires once, then resumes the schedule.

    Coroutine functions run on the event loop; any other callable runs in a
    worker thread via asyncio.to_thread. Either way the invocation is awaited
    before the next pass, so runs of one scheduler never overlap.
    """

    def __init__(
        self,
        expression: str,
        task: TaskFn,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        name: Optional[str] = None,
        evaluator: Optional[RecurrenceEvaluator] = None,
        clock: Optional[Clock] = None,
        on_error: Optional[ErrorObserver] = None,
    ):
        if not callable(task):
            raise TypeError(f'task must be callable, got {type(task).__name__}')

        self._expression = expression
        self._task = task
        self.name = name or DEFAULT_SCHEDULE_NAME
        self.evaluator: RecurrenceEvaluator = evaluator or CronEvaluator(timezone)
        self.clock: Clock = clock or SystemClock()
        self.on_error = on_error
        self.stats = SchedulerStats()
        self._state = SchedulerState.IDLE

    @classmethod
    def from_config(
        cls, config: ScheduleConfig, task: TaskFn, **kwargs: Any
    ) -> CronScheduler:
        """Build a scheduler from a validated ScheduleConfig."""
        return cls(
            config.expression,
            task,
            timezone=config.timezone,
            name=config.name,
            **kwargs,
        )

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def _log(self) -> ScheduleLoggerAdapter:
        return get_schedule_logger('scheduler', self.name)

    def __repr__(self) -> str:
        return (
            f'CronScheduler(name={self.name!r}, expression={self._expression!r}, '
            f'state={self._state.value})'
        )

    async def start(self, cancellation: Optional[CancellationSignal] = None) -> None:
        """
        Run the scheduling loop until `cancellation` is triggered.

        Without a cancellation signal the loop runs until the awaiting task is
        cancelled or the process exits.

        Raises:
            ExpressionError: If the expression cannot be evaluated
            RuntimeError: If this scheduler is already running
        """
        if self._state.is_active:
            raise RuntimeError(f"Scheduler '{self.name}' is already running")

        token: CancellationSignal = (
            cancellation if cancellation is not None else CancellationToken()
        )
        self._state = SchedulerState.WAITING
        self._log.info(f"Started with expression '{self._expression}'")

        try:
            await self._run_loop(token)
        finally:
            self._state = SchedulerState.STOPPED
            self.stats.next_run_at = None

        self._log.info(
            f'Stopped after {self.stats.invocations} run(s), '
            f'{self.stats.failures} failed'
        )

    def run(self, cancellation: Optional[CancellationSignal] = None) -> None:
        """Blocking wrapper around start() for synchronous hosts."""
        asyncio.run(self.start(cancellation))

    async def _run_loop(self, cancellation: CancellationSignal) -> None:
        last_occurrence: Optional[datetime] = None

        while not cancellation.is_cancelled:
            now = self.clock.now()

            # An early timer wake-up or a backward clock step must not
            # re-fire the occurrence that was just invoked.
            reference = now
            if last_occurrence is not None and last_occurrence > now:
                reference = last_occurrence

            occurrence = self.evaluator.next_occurrence(self._expression, reference)
            self.stats.next_run_at = occurrence

            # Fresh read: evaluation latency can leave the occurrence already due
            delay = occurrence - self.clock.now()
            if delay > timedelta(0):
                self._log.debug(
                    f'Next run at {occurrence.isoformat()} '
                    f'(in {delay.total_seconds():.3f}s)'
                )
                await self.clock.sleep(delay, cancellation)
            else:
                self._log.debug(
                    f'Occurrence {occurrence.isoformat()} already due, running immediately'
                )

            if cancellation.is_cancelled:
                self._log.debug(f'Cancelled before run at {occurrence.isoformat()}')
                break

            last_occurrence = occurrence
            await self._invoke(occurrence)

    async def _invoke(self, occurrence: datetime) -> None:
        """Run the task once, isolating any failure it raises."""
        self._state = SchedulerState.RUNNING
        self.stats.invocations += 1
        self.stats.last_run_at = self.clock.now()

        try:
            if inspect.iscoroutinefunction(self._task):
                result = self._task()
            else:
                # Blocking tasks must not stall other schedulers on this loop
                result = await asyncio.to_thread(self._task)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.stats.failures += 1
            self.stats.last_error = f'{type(e).__name__}: {e}'
            self._log.error(
                f'Task failed for occurrence {occurrence.isoformat()}: {e}',
                exc_info=True,
            )
            self._notify_error(e)
        else:
            self._log.debug(f'Ran for occurrence {occurrence.isoformat()}')
        finally:
            self._state = SchedulerState.WAITING

    def _notify_error(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception as e:
            self._log.error(f'Error observer failed: {e}', exc_info=True)
