"""Shared test doubles."""

from typing import Callable


class ManualHandle:
    def __init__(self, due: int, seq: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Timers driven by advance(ms) instead of the event loop."""

    def __init__(self) -> None:
        self.now = 0
        self._seq = 0
        self._handles: list[ManualHandle] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ManualHandle:
        self._seq += 1
        handle = ManualHandle(self.now + delay_ms, self._seq, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self._handles if not h.cancelled]

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing due callbacks in order."""
        target = self.now + ms
        while True:
            due = [h for h in self.pending if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due, h.seq))
            self._handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target

    def advance_to(self, t: int) -> None:
        self.advance(t - self.now)
