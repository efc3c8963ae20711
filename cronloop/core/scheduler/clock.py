# cronloop/core/scheduler/clock.py
from __future__ import annotations
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable
from cronloop.core.scheduler.cancellation import CancellationSignal


@runtime_checkable
class Clock(Protocol):
    """Time source and cancellable wait primitive for the scheduling loop."""

    def now(self) -> datetime:
        """Current time, UTC-aware."""
        ...

    async def sleep(self, delay: timedelta, cancellation: CancellationSignal) -> None:
        """Wait for `delay`, returning early once `cancellation` triggers."""
        ...


class SystemClock:
    """Wall-clock time with an event-loop timer."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, delay: timedelta, cancellation: CancellationSignal) -> None:
        seconds = delay.total_seconds()
        if seconds <= 0 or cancellation.is_cancelled:
            return
        try:
            await asyncio.wait_for(cancellation.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass  # Timer elapsed
