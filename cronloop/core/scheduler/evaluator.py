# cronloop/core/scheduler/evaluator.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterator, Protocol, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from croniter import croniter
from cronloop.core.defaults import DEFAULT_TIMEZONE
from cronloop.core.errors import (
    ConfigurationError,
    ErrorCode,
    expression_error,
)

# croniter reports grammar, range and unsatisfiable-date problems as
# ValueError subclasses; older releases leak KeyError/IndexError for some
# malformed fields.
_CRONITER_ERRORS = (ValueError, KeyError, IndexError)


@runtime_checkable
class RecurrenceEvaluator(Protocol):
    """Computes the next occurrence of a recurrence expression."""

    def next_occurrence(self, expression: str, after: datetime) -> datetime:
        """Return the first occurrence strictly after `after` (UTC-aware)."""
        ...


def resolve_timezone(tz_str: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ConfigurationError if unknown."""
    try:
        return ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(
            message=f"invalid timezone '{tz_str}'",
            code=ErrorCode.CONFIG_INVALID_TIMEZONE,
            notes=[f'underlying error: {e}'],
            help_text='use an IANA timezone name, e.g. "UTC" or "Europe/Istanbul"',
        ) from e


class CronEvaluator:
    """
    croniter-backed RecurrenceEvaluator.

    Accepts standard 5-field expressions (minute hour day month weekday) and
    6-field expressions whose last field is seconds. Expressions are evaluated
    in the configured timezone so DST transitions follow local wall-clock
    time; results are always UTC-aware.
    """

    def __init__(self, tz_str: str = DEFAULT_TIMEZONE) -> None:
        self.tz_str = tz_str
        self.tz = resolve_timezone(tz_str)

    def validate(self, expression: str) -> None:
        """Raise ExpressionError if `expression` is not a valid cron expression."""
        self._parse(expression, datetime.now(self.tz))

    def next_occurrence(self, expression: str, after: datetime) -> datetime:
        """
        Calculate the next occurrence of `expression` after `after`.

        Args:
            expression: Cron expression
            after: Reference time (must be timezone-aware)

        Returns:
            Next occurrence as UTC-aware datetime, strictly greater than `after`

        Raises:
            ExpressionError: If the expression is malformed or never matches
            ValueError: If `after` is naive
        """
        if after.tzinfo is None:
            raise ValueError('after must be timezone-aware')

        local_after = after.astimezone(self.tz)
        itr = self._parse(expression, local_after)
        try:
            next_run = itr.get_next(datetime)
        except _CRONITER_ERRORS as e:
            raise expression_error(
                'recurrence expression has no next occurrence',
                expression=expression,
                notes=[f'evaluated after {local_after.isoformat()}', f'croniter: {e}'],
            ) from e

        if next_run.tzinfo is None:
            raise RuntimeError('Calculated next occurrence is not timezone-aware')

        next_run = next_run.astimezone(timezone.utc)
        if next_run <= after:
            raise RuntimeError(
                f'Non-monotonic occurrence for {expression!r}: after={after} next={next_run}'
            )
        return next_run

    def _parse(self, expression: str, start: datetime) -> croniter:
        if not isinstance(expression, str) or not expression.strip():
            raise expression_error(
                'recurrence expression is empty',
                expression=str(expression),
                code=ErrorCode.EXPRESSION_EMPTY,
            )
        try:
            return croniter(expression, start)
        except _CRONITER_ERRORS as e:
            raise expression_error(
                'invalid recurrence expression',
                expression=expression,
                notes=[f'croniter: {e}'],
            ) from e


def next_occurrence(
    expression: str, after: datetime, tz_str: str = DEFAULT_TIMEZONE
) -> datetime:
    """Convenience wrapper around CronEvaluator.next_occurrence."""
    return CronEvaluator(tz_str).next_occurrence(expression, after)


def iter_occurrences(
    expression: str,
    after: datetime,
    count: int,
    tz_str: str = DEFAULT_TIMEZONE,
) -> Iterator[datetime]:
    """Yield the next `count` occurrences of `expression` after `after`."""
    if count < 0:
        raise ValueError('count must be >= 0')

    evaluator = CronEvaluator(tz_str)
    cursor = after
    for _ in range(count):
        cursor = evaluator.next_occurrence(expression, cursor)
        yield cursor
