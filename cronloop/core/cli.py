# cronloop/core/cli.py
"""
CLI host for cronloop schedules.

    cronloop run "*/5 * * * *" app.jobs:cleanup
    cronloop next "0 9 * * 1-5" --timezone Europe/Istanbul --count 3

Task locators follow the same rules as imports.resolve_task: a dotted module
path or a file path, then ':' and the attribute name. If cwd has a
pyproject.toml, cwd is added to sys.path first.
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from cronloop.core.defaults import (
    DEFAULT_PREVIEW_COUNT,
    DEFAULT_TIMEZONE,
)
from cronloop.core.errors import CronLoopError
from cronloop.core.logging import get_logger, set_default_level
from cronloop.core.models.schedule import ScheduleConfig
from cronloop.core.scheduler import CancellationToken, CronScheduler, iter_occurrences
from cronloop.core.scheduler.evaluator import resolve_timezone
from cronloop.core.utils.imports import resolve_task, setup_sys_path_from_cwd


def setup_logging(loglevel: str) -> None:
    """Configure logging level globally, including already-created loggers."""
    level = getattr(logging, loglevel.upper(), logging.INFO)
    set_default_level(level)

    logging.getLogger('cronloop').setLevel(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith('cronloop.') and isinstance(logger, logging.Logger):
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)


def run_command(args: argparse.Namespace) -> int:
    """Handle run command: schedule a task until SIGINT/SIGTERM."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)

    try:
        config = ScheduleConfig(
            expression=args.expression,
            timezone=args.timezone,
            name=args.name or args.locator,
        )
        project_root = setup_sys_path_from_cwd()
        if project_root:
            logger.info(f'Added project root to sys.path: {project_root}')
        task = resolve_task(args.locator)
    except CronLoopError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f'Failed to load task: {e}')
        return 1

    scheduler = CronScheduler.from_config(config, task)
    token = CancellationToken()

    async def run_scheduler() -> None:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logger.info('Received interrupt signal, stopping scheduler...')
            token.cancel()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                pass

        await scheduler.start(token)

    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        logger.info('Scheduler interrupted by user')
    except CronLoopError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f'Scheduler failed: {e}', exc_info=True)
        return 1
    return 0


def next_command(args: argparse.Namespace) -> int:
    """Handle next command: validate an expression and print upcoming occurrences."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)

    try:
        config = ScheduleConfig(expression=args.expression, timezone=args.timezone)
        now = datetime.now(timezone.utc)
        occurrences = list(
            iter_occurrences(config.expression, now, args.count, config.timezone)
        )
    except CronLoopError as e:
        print(e.format_rust_style(), file=sys.stderr)
        return 1

    # Print in the schedule's own timezone
    tz = resolve_timezone(config.timezone)
    logger.debug(f'Computed {len(occurrences)} occurrence(s) for {config.expression!r}')
    for occurrence in occurrences:
        print(occurrence.astimezone(tz).isoformat())
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError('must be >= 1')
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cronloop',
        description='Run a Python callable on a cron schedule',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run app/jobs.py:cleanup every 5 minutes
  cronloop run "*/5 * * * *" app.jobs:cleanup

  # Using a file path
  cronloop run "0 3 * * *" scripts/backup.py:main --timezone Europe/Istanbul

  # Preview the next occurrences of an expression
  cronloop next "0 9 * * 1-5" --count 3
""",
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument('expression', help='Cron expression, e.g. "*/5 * * * *"')
        sub.add_argument(
            '--timezone',
            default=DEFAULT_TIMEZONE,
            help=f'Timezone the expression is evaluated in (default: {DEFAULT_TIMEZONE})',
        )
        sub.add_argument(
            '--loglevel',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
            default='INFO',
            type=str.upper,
            help='Logging level (default: INFO)',
        )

    run_parser = subparsers.add_parser('run', help='Run a task on a cron schedule')
    add_common(run_parser)
    run_parser.add_argument(
        'locator',
        help='Task to run (e.g., app.jobs:cleanup or app/jobs.py:cleanup)',
    )
    run_parser.add_argument(
        '--name',
        default=None,
        help='Schedule name used in logs (default: the locator)',
    )
    run_parser.set_defaults(handler=run_command)

    next_parser = subparsers.add_parser(
        'next', help='Validate an expression and print its next occurrences'
    )
    add_common(next_parser)
    next_parser.add_argument(
        '--count',
        type=_positive_int,
        default=DEFAULT_PREVIEW_COUNT,
        help=f'Number of occurrences to print (default: {DEFAULT_PREVIEW_COUNT})',
    )
    next_parser.set_defaults(handler=next_command)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.handler(args))


if __name__ == '__main__':
    main()
