"""One-shot deferred callbacks.

The AI reply is the only asynchronous operation in a game. Two
schedulers share one interface (call_later returning a cancellable
handle):

- AsyncioScheduler: real timers on an asyncio event loop (terminal UI).
- PolledScheduler: callbacks queued against a clock and fired by poll()
  (MCP server, where every tool call is an event; tests, with a fake
  clock).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Protocol

log = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Schedule callbacks on an asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


class TimerHandle:
    """Pending callback in a PolledScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class PolledScheduler:
    """Queue callbacks and fire the due ones when poll() is called."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._pending: list[TimerHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._clock() + max(0.0, delay), callback)
        self._pending.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._pending if not h.cancelled)

    def seconds_until_next(self) -> float | None:
        """Time left before the earliest live callback is due, or None."""
        live = [h.when for h in self._pending if not h.cancelled]
        if not live:
            return None
        return max(0.0, min(live) - self._clock())

    def poll(self) -> int:
        """Fire every callback that is due, earliest first.

        Callbacks scheduled while polling wait for the next poll.

        Returns:
            Number of callbacks fired.
        """
        now = self._clock()
        due = sorted(
            (h for h in self._pending if not h.cancelled and h.when <= now),
            key=lambda h: h.when,
        )
        self._pending = [h for h in self._pending if not h.cancelled and h.when > now]
        fired = 0
        for handle in due:
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            fired += 1
        if fired:
            log.debug("Fired %d scheduled callback(s)", fired)
        return fired
