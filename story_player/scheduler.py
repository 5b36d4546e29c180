"""Reveal scheduler — timed, one-at-a-time disclosure of a frame's paragraphs.

Pacing contract (integer milliseconds). The delay before paragraph i is
computed from paragraph i-1, the one the player is currently reading;
paragraph 0 waits a fixed INITIAL_DELAY_MS. After the last paragraph one
more step, paced by that paragraph, ends the reveal.

  speaker line   typing + printing + 500
                   typing   = min(800 + 8*len, 1500)
                   printing = len * clamp(1500/len, 12, 25)
  len < 30       600
  len < 100      800 + 5*len
  otherwise      min(1200 + 6*len, 3000)

So a frame of three untagged paragraphs of lengths [10, 50, 150] reveals
at 300, 900 and 1950 ms and finishes at 4050 ms.
"""

from __future__ import annotations

import logging
from typing import Callable

from story_player.models import Paragraph, RevealCursor
from story_player.tags import has_tag
from story_player.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)

INITIAL_DELAY_MS = 300
SPEAKER_BUFFER_MS = 500
SHORT_LINE_MS = 600


def typing_phase(length: int) -> int:
    return min(800 + 8 * length, 1500)


def char_speed(length: int) -> float:
    """Milliseconds per printed character for a dialogue line."""
    if length <= 0:
        return 25.0
    return min(max(1500 / length, 12.0), 25.0)


def printing_phase(length: int) -> float:
    return length * char_speed(length)


def paragraph_delay(paragraph: Paragraph) -> int:
    """How long the player needs for `paragraph` before the next one appears."""
    length = len(paragraph.text)
    if has_tag(paragraph.tags, "speaker"):
        return round(typing_phase(length) + printing_phase(length) + SPEAKER_BUFFER_MS)
    if length < 30:
        return SHORT_LINE_MS
    if length < 100:
        return 800 + 5 * length
    return min(1200 + 6 * length, 3000)


def reveal_delay(paragraphs: list[Paragraph], index: int) -> int:
    """Delay before paragraphs[index] is disclosed."""
    if index == 0:
        return INITIAL_DELAY_MS
    return paragraph_delay(paragraphs[index - 1])


class RevealScheduler:
    """Discloses paragraphs on a timer and supports fast-forwarding.

    Args:
        timers:      Where delayed steps are scheduled.
        on_reveal:   Called once per paragraph, in order, as it is disclosed
                     (by a tick or by skip, never both).
        on_complete: Called once when a frame's reveal ends.

    At most one timer is pending at any time; begin_frame, skip and cancel
    all cancel it before doing anything else.
    """

    def __init__(
        self,
        timers: Timers,
        on_reveal: Callable[[int, Paragraph], None],
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._timers = timers
        self._on_reveal = on_reveal
        self._on_complete = on_complete
        self._paragraphs: list[Paragraph] = []
        self._handle: TimerHandle | None = None
        self.cursor = RevealCursor()

    @property
    def is_revealing(self) -> bool:
        return self.cursor.is_revealing

    @property
    def displayed_count(self) -> int:
        return self.cursor.displayed_count

    @property
    def paragraphs(self) -> list[Paragraph]:
        return list(self._paragraphs)

    def visible_paragraphs(self) -> list[Paragraph]:
        return self._paragraphs[: self.cursor.displayed_count]

    def begin_frame(self, paragraphs: list[Paragraph]) -> None:
        self._cancel_timer()
        self._paragraphs = list(paragraphs)
        self.cursor = RevealCursor(displayed_count=0, is_revealing=True, skipped=False)
        logger.debug("reveal begin paragraphs=%d", len(self._paragraphs))
        if not self._paragraphs:
            self._finish()
            return
        self._schedule(INITIAL_DELAY_MS)

    def show_all(self, paragraphs: list[Paragraph]) -> None:
        """Display paragraphs at once without applying their tags.

        Used when resuming from a snapshot: the tags already took effect
        before the snapshot was taken.
        """
        self._cancel_timer()
        self._paragraphs = list(paragraphs)
        self.cursor = RevealCursor(
            displayed_count=len(self._paragraphs), is_revealing=False, skipped=True,
        )

    def skip(self) -> bool:
        """Reveal everything now. Returns False (and does nothing) when idle."""
        if not self.cursor.is_revealing:
            return False
        self._cancel_timer()
        while self.cursor.displayed_count < len(self._paragraphs):
            self._reveal_next()
        self.cursor.skipped = True
        logger.debug("reveal skipped paragraphs=%d", len(self._paragraphs))
        self._finish()
        return True

    def cancel(self) -> None:
        """Stop revealing without disclosing anything further."""
        self._cancel_timer()
        self.cursor.is_revealing = False

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------

    def _schedule(self, delay_ms: int) -> None:
        self._handle = self._timers.call_later(delay_ms, self._on_tick)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_tick(self) -> None:
        self._handle = None
        if not self.cursor.is_revealing:
            return
        if self.cursor.displayed_count >= len(self._paragraphs):
            self._finish()
            return
        paragraph = self._reveal_next()
        if self._handle is None and self.cursor.is_revealing:
            self._schedule(paragraph_delay(paragraph))

    def _reveal_next(self) -> Paragraph:
        index = self.cursor.displayed_count
        paragraph = self._paragraphs[index]
        self.cursor.displayed_count = index + 1
        self._on_reveal(index, paragraph)
        return paragraph

    def _finish(self) -> None:
        self.cursor.is_revealing = False
        if self._on_complete is not None:
            self._on_complete()
