"""Tests for the croniter-backed recurrence evaluator (pure, deterministic)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cronloop.core.errors import ConfigurationError, ErrorCode, ExpressionError
from cronloop.core.scheduler.evaluator import (
    CronEvaluator,
    RecurrenceEvaluator,
    iter_occurrences,
    next_occurrence,
    resolve_timezone,
)


def _utc(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    microsecond: int = 0,
) -> datetime:
    """Helper to construct a UTC-aware datetime."""
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc)


# =============================================================================
# Next occurrence
# =============================================================================


@pytest.mark.unit
class TestNextOccurrence:
    """Tests for CronEvaluator.next_occurrence."""

    def test_every_five_minutes(self) -> None:
        result = CronEvaluator().next_occurrence('*/5 * * * *', _utc(2025, 6, 1, 12, 3))

        assert result == _utc(2025, 6, 1, 12, 5)

    def test_exact_match_returns_following_occurrence(self) -> None:
        """An occurrence equal to the reference time is not returned."""
        result = CronEvaluator().next_occurrence('*/5 * * * *', _utc(2025, 6, 1, 12, 5))

        assert result == _utc(2025, 6, 1, 12, 10)

    def test_sub_second_reference_rounds_forward(self) -> None:
        result = CronEvaluator().next_occurrence(
            '* * * * *', _utc(2025, 6, 1, 12, 0, 59, 500_000)
        )

        assert result == _utc(2025, 6, 1, 12, 1)

    def test_six_field_expression_uses_seconds(self) -> None:
        """The sixth field is seconds."""
        result = CronEvaluator().next_occurrence('* * * * * */10', _utc(2025, 6, 1, 12, 0, 3))

        assert result == _utc(2025, 6, 1, 12, 0, 10)

    def test_result_is_utc(self) -> None:
        result = CronEvaluator('America/New_York').next_occurrence(
            '0 * * * *', _utc(2025, 6, 1, 12, 30)
        )

        assert result.tzinfo == timezone.utc

    def test_non_utc_reference_is_accepted(self) -> None:
        plus_three = timezone(timedelta(hours=3))
        after = datetime(2025, 6, 1, 15, 3, tzinfo=plus_three)

        result = CronEvaluator().next_occurrence('*/5 * * * *', after)

        assert result == _utc(2025, 6, 1, 12, 5)

    def test_expression_evaluated_in_configured_timezone(self) -> None:
        """09:00 in Istanbul (UTC+3) is 06:00 UTC."""
        result = CronEvaluator('Europe/Istanbul').next_occurrence(
            '0 9 * * *', _utc(2025, 6, 1, 0, 0)
        )

        assert result == _utc(2025, 6, 1, 6, 0)

    def test_dst_spring_forward_follows_local_wall_clock(self) -> None:
        """09:00 New York is 14:00 UTC before the switch, 13:00 UTC after."""
        evaluator = CronEvaluator('America/New_York')

        before = evaluator.next_occurrence('0 9 * * *', _utc(2025, 3, 8, 12, 0))
        after = evaluator.next_occurrence('0 9 * * *', before)

        assert before == _utc(2025, 3, 8, 14, 0)
        assert after == _utc(2025, 3, 9, 13, 0)

    def test_weekday_range(self) -> None:
        # 2025-06-06 is a Friday
        result = CronEvaluator().next_occurrence('0 9 * * 1-5', _utc(2025, 6, 6, 10, 0))

        assert result == _utc(2025, 6, 9, 9, 0)

    @pytest.mark.parametrize(
        'expression',
        ['* * * * *', '*/5 * * * *', '0 0 1 * *', '30 18 * * 0', '* * * * * *', '0 0 29 2 *'],
    )
    @pytest.mark.parametrize(
        'after',
        [_utc(2025, 1, 1), _utc(2025, 6, 15, 12, 0, 0), _utc(2024, 12, 31, 23, 59, 59, 999_999)],
    )
    def test_result_strictly_after_reference(self, expression: str, after: datetime) -> None:
        result = CronEvaluator().next_occurrence(expression, after)

        assert result > after

    def test_naive_reference_raises(self) -> None:
        with pytest.raises(ValueError, match='timezone-aware'):
            CronEvaluator().next_occurrence('* * * * *', datetime(2025, 6, 1, 12, 0))

    def test_module_function_matches_evaluator(self) -> None:
        after = _utc(2025, 6, 1, 12, 3)

        assert next_occurrence('*/5 * * * *', after) == _utc(2025, 6, 1, 12, 5)
        assert next_occurrence('0 9 * * *', after, 'Europe/Istanbul') == _utc(2025, 6, 2, 6, 0)

    def test_satisfies_protocol(self) -> None:
        assert isinstance(CronEvaluator(), RecurrenceEvaluator)


# =============================================================================
# Malformed expressions
# =============================================================================


@pytest.mark.unit
class TestMalformedExpression:
    """Expression errors carry a code, the expression and the croniter cause."""

    @pytest.mark.parametrize('expression', ['', '   '])
    def test_empty_expression(self, expression: str) -> None:
        with pytest.raises(ExpressionError) as exc_info:
            CronEvaluator().next_occurrence(expression, _utc(2025, 6, 1))

        assert exc_info.value.code == ErrorCode.EXPRESSION_EMPTY

    @pytest.mark.parametrize(
        'expression',
        ['61 * * * *', '* 24 * * *', '* * 32 * *', '* * * 13 *', 'not a cron', '* * *'],
    )
    def test_invalid_expression(self, expression: str) -> None:
        with pytest.raises(ExpressionError) as exc_info:
            CronEvaluator().next_occurrence(expression, _utc(2025, 6, 1))

        exc = exc_info.value
        assert exc.code == ErrorCode.EXPRESSION_INVALID
        assert exc.expression == expression
        assert exc.__cause__ is not None
        assert f'expression: {expression!r}' in exc.notes

    def test_expression_error_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            CronEvaluator().next_occurrence('61 * * * *', _utc(2025, 6, 1))

    def test_validate_accepts_valid_expression(self) -> None:
        CronEvaluator().validate('*/15 9-17 * * 1-5')

    def test_validate_rejects_invalid_expression(self) -> None:
        with pytest.raises(ExpressionError):
            CronEvaluator().validate('*/15 25 * * *')


# =============================================================================
# Timezones
# =============================================================================


@pytest.mark.unit
class TestTimezone:
    """Timezone resolution."""

    def test_unknown_timezone_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            CronEvaluator('Mars/Olympus_Mons')

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_TIMEZONE
        assert not isinstance(exc_info.value, ExpressionError)

    def test_resolve_timezone(self) -> None:
        assert resolve_timezone('UTC').key == 'UTC'


# =============================================================================
# iter_occurrences
# =============================================================================


@pytest.mark.unit
class TestIterOccurrences:
    """Tests for previewing a run of occurrences."""

    def test_yields_ascending_sequence(self) -> None:
        result = list(iter_occurrences('0 * * * *', _utc(2025, 6, 1, 12, 30), 3))

        assert result == [
            _utc(2025, 6, 1, 13),
            _utc(2025, 6, 1, 14),
            _utc(2025, 6, 1, 15),
        ]

    def test_zero_count_yields_nothing(self) -> None:
        assert list(iter_occurrences('0 * * * *', _utc(2025, 6, 1), 0)) == []

    def test_negative_count_raises(self) -> None:
        with pytest.raises(ValueError, match='count'):
            list(iter_occurrences('0 * * * *', _utc(2025, 6, 1), -1))
