"""Cancellable timers for the session's cooperative timeline.

Everything time-driven in a session (paragraph reveal, the vision flash,
the interrogation countdown) goes through a `Timers` object so the whole
engine runs on one event loop, and tests can swap in a manual clock.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimers:
    """Schedules callbacks on the running asyncio loop.

    Must be used from inside a coroutine (or a callback running on the
    loop); asyncio raises RuntimeError otherwise.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)
