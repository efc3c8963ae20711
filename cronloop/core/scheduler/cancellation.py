# cronloop/core/scheduler/cancellation.py
from __future__ import annotations
import asyncio
import threading
from typing import Callable, Protocol, runtime_checkable
from cronloop.core.logging import get_logger

logger = get_logger('cancellation')


@runtime_checkable
class CancellationSignal(Protocol):
    """One-way stop flag observed by a scheduler loop."""

    @property
    def is_cancelled(self) -> bool: ...

    async def wait(self) -> None:
        """Return once the signal has been triggered."""
        ...


class CancellationToken:
    """
    Thread-safe CancellationSignal.

    `cancel()` may be called from any thread, including the event loop
    thread itself, and from signal handlers registered with
    `loop.add_signal_handler`. Once cancelled the token stays cancelled.
    A single token may be shared by any number of schedulers, across
    event loops.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._lock = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []
        self._callbacks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f'CancellationToken(cancelled={self._cancelled})'

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Trigger the token. Idempotent."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            waiters, self._waiters = self._waiters, []
            callbacks, self._callbacks = self._callbacks, []

        for loop, event in waiters:
            if loop.is_closed():
                continue
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                # Loop closed between the check and the call
                logger.debug('Skipping wake-up for closed event loop')

        for callback in callbacks:
            self._run_callback(callback)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run `callback` once when the token is cancelled (now, if it already is)."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    async def wait(self) -> None:
        """Block the current task until the token is cancelled."""
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        entry = (loop, event)

        with self._lock:
            if self._cancelled:
                return
            self._waiters.append(entry)

        try:
            await event.wait()
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f'Cancellation callback {callback!r} failed: {e}', exc_info=True)
