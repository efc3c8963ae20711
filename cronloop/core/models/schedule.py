# cronloop/core/models/schedule.py
from __future__ import annotations
from pydantic import BaseModel, Field, model_validator
from typing_extensions import Self
from cronloop.core.defaults import DEFAULT_SCHEDULE_NAME, DEFAULT_TIMEZONE
from cronloop.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    expression_error,
    raise_collected,
)
from cronloop.core.scheduler.evaluator import CronEvaluator


class ScheduleConfig(BaseModel):
    """
    Validated configuration for a single cron schedule.

    Fields:
        - expression: Cron expression, 5 fields or 6 with trailing seconds
        - timezone: IANA timezone the expression is evaluated in
        - name: Label used in log output

    Unlike CronScheduler, which evaluates its expression lazily on start(),
    the config validates the expression and timezone at construction.

    Examples:
        - Every 5 minutes: ScheduleConfig(expression='*/5 * * * *')
        - Weekdays at 09:00 Istanbul time:
          ScheduleConfig(expression='0 9 * * 1-5', timezone='Europe/Istanbul')
    """

    expression: str = Field(description='Cron expression')
    timezone: str = Field(
        default=DEFAULT_TIMEZONE, description='Timezone for expression evaluation'
    )
    name: str = Field(
        default=DEFAULT_SCHEDULE_NAME, min_length=1, description='Schedule label'
    )

    @model_validator(mode='after')
    def validate_schedule(self) -> Self:
        """Ensure timezone and expression are both usable."""
        report = ValidationReport('schedule')

        evaluator: CronEvaluator | None = None
        try:
            evaluator = CronEvaluator(self.timezone)
        except ConfigurationError as e:
            report.add(e)

        # Checked without the evaluator so it is reported even when the
        # timezone is invalid
        if not self.expression.strip():
            report.add(
                expression_error(
                    f"schedule '{self.name}' has an empty expression",
                    expression=self.expression,
                    code=ErrorCode.EXPRESSION_EMPTY,
                )
            )
        elif evaluator is not None:
            try:
                evaluator.validate(self.expression)
            except ConfigurationError as e:
                report.add(e.with_note(f"in schedule '{self.name}'"))

        raise_collected(report)
        return self
