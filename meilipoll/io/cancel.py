"""
Cooperative cancellation signal for task waits.
"""

from __future__ import annotations

import asyncio
import threading
from typing import List, Optional, Tuple


class CancelToken:
    """
    Thread-safe cancellation flag that can also be awaited.

    A wait observes the token before every fetch and while it sleeps between polls;
    a fetch already in flight is never interrupted. The same token may be shared by
    several waits, and ``cancel()`` may be called from any thread.

    Example:
        token = CancelToken()
        threading.Timer(5, token.cancel).start()
        api.tasks.wait_for_task(task, cancel_token=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            waiters, self._waiters = self._waiters, []
        for loop, fut in waiters:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(_resolve, fut)

    async def sleep(self, delay: float) -> bool:
        """
        Sleep for ``delay`` seconds unless cancelled first.

        :return: True if the token was cancelled before or during the sleep.
        """
        if self.cancelled:
            return True
        if delay <= 0:
            await asyncio.sleep(0)
            return self.cancelled

        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        with self._lock:
            if self._event.is_set():
                return True
            self._waiters.append((loop, fut))
        try:
            await asyncio.wait({fut}, timeout=delay)
        finally:
            self._discard(fut)
        return self.cancelled

    def _discard(self, fut: asyncio.Future) -> None:
        with self._lock:
            self._waiters = [(lp, f) for lp, f in self._waiters if f is not fut]
        if not fut.done():
            fut.cancel()


def _resolve(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


async def interruptible_sleep(delay: float, token: Optional[CancelToken]) -> bool:
    """Sleep ``delay`` seconds, returning early with True if ``token`` gets cancelled."""
    if token is None:
        await asyncio.sleep(max(delay, 0))
        return False
    return await token.sleep(delay)
