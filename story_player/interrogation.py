"""Interrogation sub-state-machine.

States: Inactive -> Active -> Inactive, re-entrant. Transitions are driven
only by tags (see TagInterpreter); this module owns what happens on entry,
while active, and on exit.

Entry tags (read from the paragraph carrying `mode:interrogation`):
  suspect:<id>         subject id, default "unknown"
  suspect_name:<name>  display name, default the subject id
  timer:<seconds>      time budget, default 300 (also for malformed values)

Update vocabulary while active:
  pressure:<+/-n>      clamped to 0..100
  rapport:<+/-n>       clamped to 0..100
  suspect_mood:<mood>  explicit mood override
  question_asked       counter
  clue_revealed:<id>   deduplicated; clue_discovered haptic
  confession:<true|obtained>  case_solved haptic

The countdown ticks once per second. Reaching zero calls on_time_up once
and stops; it does not leave the mode; the story is expected to answer
with an `end_interrogation` tag on its next frame.
"""

from __future__ import annotations

import logging
from typing import Callable

from story_player.effects import EffectSink
from story_player.models import SUSPECT_MOODS, InterrogationState
from story_player.tags import INTERROGATION_KEYS, get_tag_value, parse_tag
from story_player.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)

DEFAULT_TIME_BUDGET_SECONDS = 300
TICK_MS = 1000
WARNING_SECONDS = 30

def _parse_int(value: str | bool | None) -> int | None:
    if not isinstance(value, str):
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def parse_time_budget(value: str | bool | None, default: int = DEFAULT_TIME_BUDGET_SECONDS) -> int:
    """Seconds from a `timer:` tag value; non-numeric or non-positive -> default."""
    seconds = _parse_int(value)
    if seconds is None or seconds <= 0:
        return default
    return seconds


def tactical_hint(pressure: int, time_budget_seconds: int) -> str:
    """Advice for the player. Pure: same inputs, same hint."""
    if time_budget_seconds <= 0:
        return "Time is up. Whatever you have now is all you will get."
    if pressure > 80:
        return "The suspect is ready to confess. But will it be the truth?"
    if pressure > 60 and time_budget_seconds < 60:
        return "Pressure is high and time is short. Show your strongest evidence."
    if pressure > 60:
        return "High pressure without trust can lead to false testimony."
    if time_budget_seconds < 60:
        return "Less than a minute left. Ask the question that matters."
    if pressure < 30:
        return "The suspect is holding steady. Change tactics or present a clue."
    return "Keep the pressure on, but watch for the breaking point."


def derive_suspect_mood(pressure: int, rapport: int, current: str) -> str:
    if pressure > 80 and rapport < 20:
        return "broken"
    if pressure > 60 and rapport < 30:
        return "aggressive"
    if rapport > 70 and pressure < 30:
        return "cooperative"
    if rapport > 50:
        return "relaxed"
    if pressure > 50:
        return "defensive"
    return current


def create_interrogation_state(
    subject_id: str, subject_name: str, max_time_seconds: int = DEFAULT_TIME_BUDGET_SECONDS,
) -> InterrogationState:
    return InterrogationState(
        subject_id=subject_id,
        subject_name=subject_name,
        time_budget_seconds=max_time_seconds,
        max_time_seconds=max_time_seconds,
        tactical_hint=tactical_hint(0, max_time_seconds),
    )


def apply_interrogation_tags(
    state: InterrogationState, tags: list[str], effects: EffectSink,
) -> InterrogationState:
    """Return a new state with the update vocabulary in `tags` applied."""
    new = state.model_copy(deep=True)

    for tag in tags:
        parsed = parse_tag(tag)
        key, value = parsed.key, parsed.value
        if key not in INTERROGATION_KEYS:
            continue

        if key == "pressure":
            delta = _parse_int(value)
            if delta is None:
                logger.warning("Ignoring malformed interrogation tag %r", tag)
            else:
                new.pressure = _clamp(new.pressure + delta)

        elif key == "rapport":
            delta = _parse_int(value)
            if delta is None:
                logger.warning("Ignoring malformed interrogation tag %r", tag)
            else:
                new.rapport = _clamp(new.rapport + delta)

        elif key == "suspect_mood":
            if value in SUSPECT_MOODS:
                new.suspect_mood = value

        elif key == "question_asked":
            new.questions_asked += 1

        elif key == "clue_revealed":
            clue = str(value)
            if clue not in new.clues_revealed:
                new.clues_revealed.append(clue)
                effects.haptic("clue_discovered")

        elif key == "confession":
            if value in ("true", "obtained") and not new.confession_obtained:
                new.confession_obtained = True
                effects.haptic("case_solved")

    new.suspect_mood = derive_suspect_mood(new.pressure, new.rapport, new.suspect_mood)
    new.tactical_hint = tactical_hint(new.pressure, new.time_budget_seconds)
    return new


class InterrogationMachine:
    """Owns the interrogation state and its one-second countdown."""

    def __init__(
        self,
        timers: Timers,
        effects: EffectSink,
        on_time_up: Callable[[], None] | None = None,
        default_seconds: int = DEFAULT_TIME_BUDGET_SECONDS,
    ) -> None:
        self._timers = timers
        self._effects = effects
        self._on_time_up = on_time_up
        self._default_seconds = default_seconds
        self._handle: TimerHandle | None = None
        self.state: InterrogationState | None = None

    @property
    def active(self) -> bool:
        return self.state is not None

    @property
    def tactical_hint(self) -> str:
        return self.state.tactical_hint if self.state else ""

    def enter(self, tags: list[str]) -> InterrogationState:
        suspect = get_tag_value(tags, "suspect")
        subject_id = suspect if isinstance(suspect, str) and suspect else "unknown"
        name = get_tag_value(tags, "suspect_name")
        subject_name = name if isinstance(name, str) and name else subject_id
        seconds = parse_time_budget(get_tag_value(tags, "timer"), self._default_seconds)

        self.state = create_interrogation_state(subject_id, subject_name, seconds)
        logger.info("interrogation start subject=%s seconds=%d", subject_id, seconds)
        self._start_countdown()
        return self.state

    def update(self, tags: list[str]) -> bool:
        """Apply update tags. Returns True when the state changed."""
        if self.state is None:
            return False
        updated = apply_interrogation_tags(self.state, tags, self._effects)
        changed = updated != self.state
        self.state = updated
        return changed

    def exit(self) -> None:
        if self.state is not None:
            logger.info("interrogation end subject=%s", self.state.subject_id)
        self._stop_countdown()
        self.state = None

    def restore(self, state: InterrogationState | None) -> None:
        """Adopt a previously saved state and resume its countdown."""
        self._stop_countdown()
        self.state = state.model_copy(deep=True) if state is not None else None
        if self.state is not None and self.state.time_budget_seconds > 0:
            self._start_countdown()

    def close(self) -> None:
        self._stop_countdown()

    # ------------------------------------------------------------------
    # Countdown
    # ------------------------------------------------------------------

    def _start_countdown(self) -> None:
        self._stop_countdown()
        self._handle = self._timers.call_later(TICK_MS, self._tick)

    def _stop_countdown(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        state = self.state
        if state is None or state.time_budget_seconds <= 0:
            return

        state.time_budget_seconds -= 1
        state.tactical_hint = tactical_hint(state.pressure, state.time_budget_seconds)
        if state.time_budget_seconds == WARNING_SECONDS:
            self._effects.haptic("timer_warning")

        if state.time_budget_seconds == 0:
            logger.info("interrogation time up subject=%s", state.subject_id)
            self._effects.haptic("game_over")
            if self._on_time_up is not None:
                self._on_time_up()
            return

        self._handle = self._timers.call_later(TICK_MS, self._tick)
