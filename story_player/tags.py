"""Tag parsing and the tag interpreter.

A tag is either a bare flag ("clue") or a "key:value" pair
("mood:horror"). The first colon splits key from value; both are trimmed.

TagInterpreter.apply() turns one paragraph's tags into presentation-state
changes, interrogation transitions and effect requests:

  mood:<id>             set mood; haptic by mood class when it changes
  chapter:<n>           set chapter; scene_transition haptic when it changes
  title:<text>          set title
  image:<name>          set scene image (image_base + name); scene_transition
  image_position:<pos>  top | background | inline
  clear_image           clear scene image
  clue                  clue_discovered haptic
  suspect_revealed, new_suspect   suspect_revealed haptic
  important, revelation           dramatic haptic
  warning, danger                 timer_warning haptic
  type:vision           vision flash for vision_seconds; dramatic haptic
  mode:interrogation    enter interrogation; dramatic haptic
  mode:normal, end_interrogation  leave interrogation
  sound:<id>, stop_sound:<id>     audio cue
  haptic:<category>     direct haptic pulse
  notify:<message>      notification

Anything else is handed to the tag-observed callback as (key, value|True).
Nothing here raises on bad content: authors iterate fast and a typo must
not end a session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from story_player.effects import EffectSink
from story_player.models import IMAGE_POSITIONS, MOODS, EngineSettings, PresentationState
from story_player.timers import TimerHandle, Timers

if TYPE_CHECKING:
    from story_player.interrogation import InterrogationMachine

logger = logging.getLogger(__name__)

TagObserver = Callable[[str, str | bool], None]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TagValue:
    key: str
    value: str | bool


def parse_tag(tag: str) -> TagValue:
    """Parse "key:value" or a bare "key" (value True)."""
    key, sep, value = tag.partition(":")
    if not sep:
        return TagValue(key=tag.strip(), value=True)
    return TagValue(key=key.strip(), value=value.strip())


def get_tag_value(tags: list[str], key: str) -> str | bool | None:
    """Value of the first tag with `key`, or None."""
    for tag in tags:
        parsed = parse_tag(tag)
        if parsed.key == key:
            return parsed.value
    return None


def has_tag(tags: list[str], key: str) -> bool:
    return any(parse_tag(tag).key == key for tag in tags)


def get_all_tag_values(tags: list[str], key: str) -> list[str]:
    return [str(t.value) for t in map(parse_tag, tags) if t.key == key]


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

MOOD_HAPTICS: dict[str, str] = {
    "horror": "suspense",
    "pressure": "suspense",
    "tense": "dramatic",
    "conflict": "dramatic",
    "discovery": "insight",
    "hope": "insight",
}

FLAG_HAPTICS: list[tuple[tuple[str, ...], str]] = [
    (("clue",), "clue_discovered"),
    (("suspect_revealed", "new_suspect"), "suspect_revealed"),
    (("important", "revelation"), "dramatic"),
    (("warning", "danger"), "timer_warning"),
]

# Keys handled here or read by other components (scheduler, classifier,
# interrogation entry). Never forwarded as observations.
RECOGNIZED_KEYS = frozenset({
    "mood", "chapter", "title", "image", "image_position", "clear_image",
    "clue", "suspect_revealed", "new_suspect", "important", "revelation",
    "warning", "danger", "type", "mode", "end_interrogation",
    "suspect", "suspect_name", "timer", "speaker",
    "sound", "stop_sound", "haptic", "notify",
})

# Consumed by the interrogation machine around an active interrogation.
INTERROGATION_KEYS = frozenset({
    "pressure",
    "rapport",
    "suspect_mood",
    "question_asked",
    "clue_revealed",
    "confession",
})


class TagInterpreter:
    """Applies paragraph tags to presentation state and effect sinks.

    Each paragraph's tags must be applied exactly once; haptics are
    fire-and-forget per application.
    """

    def __init__(
        self,
        effects: EffectSink,
        timers: Timers,
        interrogation: InterrogationMachine,
        settings: EngineSettings | None = None,
        on_tag_observed: TagObserver | None = None,
    ) -> None:
        self._effects = effects
        self._timers = timers
        self._interrogation = interrogation
        self._settings = settings or EngineSettings()
        self._on_tag_observed = on_tag_observed
        self._vision_handle: TimerHandle | None = None
        self._closed = False
        self.presentation = PresentationState()

    def apply(self, tags: list[str]) -> None:
        if self._closed or not tags:
            return
        logger.debug("apply tags=%r", tags)
        anomalies: set[str] = set()
        state = self.presentation

        mood = get_tag_value(tags, "mood")
        if isinstance(mood, str):
            if mood in MOODS:
                previous = state.mood
                state.mood = mood
                if mood != previous and mood in MOOD_HAPTICS:
                    self._effects.haptic(MOOD_HAPTICS[mood])
            else:
                anomalies.add("mood")

        chapter = get_tag_value(tags, "chapter")
        if isinstance(chapter, str):
            try:
                number = int(chapter)
            except ValueError:
                number = 0
            if number >= 1:
                if number != state.chapter:
                    state.chapter = number
                    self._effects.haptic("scene_transition")
            else:
                anomalies.add("chapter")

        title = get_tag_value(tags, "title")
        if isinstance(title, str):
            state.title = title

        image = get_tag_value(tags, "image")
        if isinstance(image, str) and image:
            state.scene_image = self._resolve_image(image)
            state.image_loaded = False
            self._effects.haptic("scene_transition")

        position = get_tag_value(tags, "image_position")
        if isinstance(position, str):
            if position in IMAGE_POSITIONS:
                state.image_position = position
            else:
                anomalies.add("image_position")

        if has_tag(tags, "clear_image"):
            state.scene_image = None

        for keys, category in FLAG_HAPTICS:
            if any(has_tag(tags, key) for key in keys):
                self._effects.haptic(category)

        if get_tag_value(tags, "type") == "vision":
            self._start_vision()

        interrogating = self._apply_mode(tags, anomalies)
        self._apply_effect_tags(tags)
        self._forward_unrecognized(tags, anomalies, interrogating)

    def mark_image_loaded(self) -> None:
        self.presentation.image_loaded = True

    def restore(self, presentation: PresentationState) -> None:
        """Adopt saved presentation state. A saved vision flash is not resumed."""
        self.presentation = presentation.model_copy(update={"vision_active": False})

    def reset(self) -> None:
        """Back to default presentation for a new play-through."""
        self._cancel_vision()
        self.presentation = PresentationState()

    def close(self) -> None:
        self._closed = True
        self._cancel_vision()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve_image(self, name: str) -> str:
        return f"{self._settings.image_base.rstrip('/')}/{name.lstrip('/')}"

    def _apply_mode(self, tags: list[str], anomalies: set[str]) -> bool:
        """Handle mode transitions. True if the paragraph touched an interrogation."""
        machine = self._interrogation
        was_active = machine.active
        mode = get_tag_value(tags, "mode")

        if mode == "interrogation":
            if not was_active:
                self.presentation.mode = "interrogation"
                self._effects.haptic("dramatic")
                machine.enter(tags)
        elif mode == "normal" or has_tag(tags, "end_interrogation"):
            if was_active:
                self.presentation.mode = "normal"
                machine.exit()
        elif mode is not None:
            anomalies.add("mode")

        if was_active and machine.active:
            machine.update(tags)
        return was_active or machine.active

    def _apply_effect_tags(self, tags: list[str]) -> None:
        for sound_id in get_all_tag_values(tags, "sound"):
            self._effects.play_sound(sound_id)
        for sound_id in get_all_tag_values(tags, "stop_sound"):
            self._effects.stop_sound(sound_id)
        for category in get_all_tag_values(tags, "haptic"):
            self._effects.haptic(category)
        for message in get_all_tag_values(tags, "notify"):
            self._effects.notify(message, "info")

    def _forward_unrecognized(
        self, tags: list[str], anomalies: set[str], interrogating: bool,
    ) -> None:
        for tag in tags:
            parsed = parse_tag(tag)
            if parsed.key in RECOGNIZED_KEYS and parsed.key not in anomalies:
                continue
            if interrogating and parsed.key in INTERROGATION_KEYS:
                continue
            if parsed.key in anomalies:
                logger.warning("Tag %r has an unusable value, forwarded as observation", tag)
            if self._on_tag_observed is not None:
                self._on_tag_observed(parsed.key, parsed.value)

    def _start_vision(self) -> None:
        self._cancel_vision()
        self.presentation.vision_active = True
        self._effects.haptic("dramatic")
        self._vision_handle = self._timers.call_later(
            self._settings.vision_seconds * 1000, self._end_vision,
        )

    def _end_vision(self) -> None:
        self._vision_handle = None
        if not self._closed:
            self.presentation.vision_active = False

    def _cancel_vision(self) -> None:
        if self._vision_handle is not None:
            self._vision_handle.cancel()
            self._vision_handle = None
