"""Shared default constants for the cronloop library."""

# Timezone a recurrence expression is evaluated in when none is configured.
DEFAULT_TIMEZONE: str = 'UTC'

# Name used in log lines for schedulers constructed without one.
DEFAULT_SCHEDULE_NAME: str = 'cron'

# Number of upcoming occurrences printed by `cronloop next`.
DEFAULT_PREVIEW_COUNT: int = 5
