"""Rust-style error display for cronloop configuration and expression errors."""

from __future__ import annotations

import inspect
import linecache
import os
import sys
import sysconfig
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Absolute path to the cronloop package directory.
# Used by _find_user_frame to distinguish library frames from user code.
_CRONLOOP_PKG_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _stdlib_dirs() -> tuple[str, ...]:
    """Standard library roots, skipped like site-packages when locating user code.

    asyncio frames sit between a scheduler loop and the code that started it.
    """
    paths = sysconfig.get_paths()
    dirs = {paths['stdlib'], paths['platstdlib']}
    dirs |= {os.path.realpath(d) for d in dirs}
    return tuple(os.path.join(d, '') for d in dirs)


_STDLIB_DIRS = _stdlib_dirs()


class ErrorCode(str, Enum):
    """Error codes for configuration errors.

    Organized by category:
    - E100-E199: Recurrence expression errors
    - E200-E299: Config/CLI errors
    """

    # Recurrence expression (E100-E199)
    EXPRESSION_EMPTY = 'E100'
    EXPRESSION_INVALID = 'E101'

    # Config/CLI (E200-E299)
    CONFIG_INVALID_TIMEZONE = 'E200'
    TASK_INVALID_LOCATOR = 'E201'
    TASK_NOT_CALLABLE = 'E202'


class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    DIM = '\033[2m'


class _NoColors:
    """No-op color codes for non-TTY output."""

    RESET = ''
    BOLD = ''
    RED = ''
    BLUE = ''
    CYAN = ''
    GREEN = ''
    YELLOW = ''
    DIM = ''


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """Determine if colors should be used in output."""
    if _env_flag('CRONLOOP_FORCE_COLOR'):
        return True

    # NO_COLOR standard (https://no-color.org/)
    if os.environ.get('NO_COLOR') is not None:
        return False

    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


def _should_show_verbose() -> bool:
    """Determine if verbose output (full traceback) should be shown."""
    return _env_flag('CRONLOOP_VERBOSE')


def _should_use_plain_errors() -> bool:
    """Determine if plain Python errors should be used instead of Rust-style."""
    return _env_flag('CRONLOOP_PLAIN_ERRORS')


@dataclass
class SourceLocation:
    """Source code location information."""

    file: str
    line: int

    @classmethod
    def from_frame(cls, frame: Any) -> SourceLocation:
        """Create SourceLocation from a frame object."""
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno)

    def get_source_line(self) -> str | None:
        """Read the source line from the file."""
        line = linecache.getline(self.file, self.line)
        return line.rstrip('\n') if line else None

    def format_short(self) -> str:
        return f'{self.file}:{self.line}'


@dataclass
class CronLoopError(Exception):
    """Base exception for cronloop configuration errors.

    Provides Rust-style error formatting with:
    - Error code and category
    - Source location with code snippet
    - Notes and help text
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

        # Auto-detect location from call stack if not provided
        if self.location is None:
            user_frame = _find_user_frame()
            if user_frame is not None:
                self.location = SourceLocation.from_frame(user_frame)

    def with_note(self, note: str) -> CronLoopError:
        """Add a note to the error (fluent API)."""
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> CronLoopError:
        """Set help text (fluent API)."""
        self.help_text = help_text
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format the error in Rust style."""
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        lines: list[str] = ['']

        # error[E101]: message
        code_part = f'[{self.code.value}]' if self.code else ''
        lines.append(f'{c.BOLD}{c.RED}error{code_part}:{c.RESET} {self.message}')

        if self.location:
            source_line = self.location.get_source_line()
            lines.append(
                f'  {c.BLUE}-->{c.RESET} {c.CYAN}{self.location.format_short()}{c.RESET}'
            )

            if source_line:
                line_num = str(self.location.line)
                padding = ' ' * len(line_num)
                stripped = source_line.lstrip()
                indent = len(source_line) - len(stripped)
                underline = ' ' * indent + '^' * len(stripped)

                lines.append(f'   {c.BLUE}{padding}|{c.RESET}')
                lines.append(f'   {c.BLUE}{line_num}|{c.RESET} {source_line}')
                lines.append(
                    f'   {c.BLUE}{padding}|{c.RESET} {c.RED}{underline}{c.RESET}'
                )

        for note in self.notes:
            note_lines = note.split('\n')
            lines.append(
                f'   {c.BLUE}={c.RESET} {c.BOLD}{c.BLUE}note{c.RESET}: {note_lines[0]}'
            )
            for note_line in note_lines[1:]:
                lines.append(f'          {note_line}')

        if self.help_text:
            lines.append('')
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}{c.GREEN}help{c.RESET}:')
            for help_line in self.help_text.split('\n'):
                lines.append(f'        {help_line}')

        return '\n'.join(lines)

    def __str__(self) -> str:
        """Plain text rendering, safe for log records and non-terminal output."""
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _cronloop_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Custom exception hook for CronLoopError exceptions."""
    if _should_use_plain_errors() or not isinstance(exc_value, CronLoopError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)

    if _should_show_verbose():
        print(file=sys.stderr)
        c = _Colors if _should_use_colors() else _NoColors
        print(
            f'{c.DIM}Full traceback (CRONLOOP_VERBOSE=1):{c.RESET}',
            file=sys.stderr,
        )
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    """Install the custom exception hook for Rust-style error display."""
    sys.excepthook = _cronloop_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook


# =============================================================================
# Specific Error Classes
# =============================================================================


@dataclass
class ConfigurationError(CronLoopError):
    """Raised when scheduler, timezone or CLI configuration is invalid."""

    pass


@dataclass
class ExpressionError(ConfigurationError):
    """Raised when a recurrence expression cannot be parsed or evaluated."""

    expression: str | None = None


# =============================================================================
# Phase-Gated Error Collection
# =============================================================================


class ValidationReport:
    """Collects multiple CronLoopError instances within a validation phase."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[CronLoopError] = []

    def add(self, error: CronLoopError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format all collected errors, then append an aborting summary."""
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        parts = [error.format_rust_style(use_colors=use_colors) for error in self.errors]
        parts.append(
            f'\n{c.BOLD}{c.RED}error{c.RESET}: aborting due to {len(self.errors)} previous errors'
        )
        return '\n'.join(parts)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(CronLoopError):
    """Wraps a ValidationReport containing 2+ errors."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        # Location is per-error in the report
        super(CronLoopError, self).__init__(self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise collected errors.

    - 0 errors: no-op (returns normally)
    - 1 error: raises the original error (preserves except clauses)
    - 2+ errors: raises MultipleValidationErrors wrapping the report
    """
    count = len(report.errors)
    if count == 0:
        return
    if count == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {count} previous errors',
        report=report,
    )


def _is_internal_file(filename: str) -> bool:
    """True for cronloop, standard library and installed third-party sources."""
    if filename.startswith(_CRONLOOP_PKG_DIR) or '/site-packages/' in filename:
        return True
    return filename.startswith(_STDLIB_DIRS)


def _find_user_frame() -> Any | None:
    """Find the first frame outside of cronloop, stdlib and site-packages."""
    frame = inspect.currentframe()
    while frame is not None:
        filename = frame.f_code.co_filename

        if filename.startswith('<') or _is_internal_file(filename):
            frame = frame.f_back
            continue

        return frame

    return None


def expression_error(
    message: str,
    *,
    expression: str,
    code: ErrorCode = ErrorCode.EXPRESSION_INVALID,
    notes: list[str] | None = None,
    help_text: str | None = None,
) -> ExpressionError:
    """Create an ExpressionError with the offending expression attached as a note."""
    all_notes = [f'expression: {expression!r}']
    all_notes.extend(notes or [])
    return ExpressionError(
        message=message,
        code=code,
        notes=all_notes,
        help_text=help_text
        or 'use a 5-field cron expression (minute hour day month weekday),\n'
        'optionally followed by a seconds field, e.g. "*/5 * * * *"',
        expression=expression,
    )
