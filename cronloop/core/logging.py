# cronloop/core/logging.py
import logging
import sys
from datetime import datetime
from typing import Any, MutableMapping

# Module-level default log level, can be changed by set_default_level()
_default_level: int = logging.INFO


class ColoredFormatter(logging.Formatter):
    """
    Colored formatter for cronloop logging.

    Layout: [HH:MM:SS.mmm] [component]  [LEVEL]   <schedule> message

    Milliseconds are shown because six-field expressions fire on seconds.
    The <schedule> tag appears only on records carrying a `schedule` attribute,
    see ScheduleLoggerAdapter.
    """

    COLORS = {
        'RESET': '\033[0m',
        'LIGHT_BLUE': '\033[94m',
        'CYAN': '\033[96m',
        'WHITE': '\033[97m',
        'GRAY': '\033[90m',
        'GREEN': '\033[92m',
        'YELLOW': '\033[93m',
        'RED': '\033[91m',
        'BRIGHT_RED': '\033[1;91m',
    }

    LEVEL_COLORS = {
        'DEBUG': COLORS['GRAY'],
        'INFO': COLORS['GREEN'],
        'WARNING': COLORS['YELLOW'],
        'ERROR': COLORS['RED'],
        'CRITICAL': COLORS['BRIGHT_RED'],
    }

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created)
        time_str = f"{created.strftime('%H:%M:%S')}.{created.microsecond // 1000:03d}"

        # 'cronloop.scheduler' -> 'scheduler'
        component = record.name.split('.')[-1] if '.' in record.name else record.name

        # [cancellation] = 14 chars
        component_padded = f'[{component}]'.ljust(16)
        level_padded = f'[{record.levelname}]'.ljust(10)

        level_color = self.LEVEL_COLORS.get(record.levelname, self.COLORS['WHITE'])

        schedule = getattr(record, 'schedule', None)
        schedule_tag = (
            f"{self.COLORS['CYAN']}<{schedule}>{self.COLORS['RESET']} " if schedule else ''
        )

        formatted = (
            f"{self.COLORS['LIGHT_BLUE']}[{time_str}]{self.COLORS['RESET']} "
            f"{self.COLORS['WHITE']}{component_padded}{self.COLORS['RESET']}"
            f"{level_color}{level_padded}{self.COLORS['RESET']}"
            f"{schedule_tag}"
            f"{self.COLORS['WHITE']}{record.getMessage()}{self.COLORS['RESET']}"
        )

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


class ScheduleLoggerAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Tags every record with the name of the schedule that emitted it."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get('extra') or {})
        extra.setdefault('schedule', (self.extra or {}).get('schedule'))
        kwargs['extra'] = extra
        return msg, kwargs


def set_default_level(level: int) -> None:
    """Set the default log level for new loggers."""
    global _default_level
    _default_level = level


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for the specified component."""
    logger = logging.getLogger(f'cronloop.{component_name}')

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter())
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)

        # Prevent duplicate logs from parent loggers
        logger.propagate = False

    return logger


def get_schedule_logger(component_name: str, schedule: str) -> ScheduleLoggerAdapter:
    """Component logger whose records are tagged with `schedule`."""
    return ScheduleLoggerAdapter(get_logger(component_name), {'schedule': schedule})
