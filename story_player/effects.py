"""Effect sinks — fire-and-forget side channels driven by story tags.

The engine never observes a return value from a sink. Haptic pulses, audio
cues and notifications all happen on the player's device, so the engine
only names the effect; a sink decides what to do with it.

    class EffectSink(Protocol):
        def haptic(self, category: str) -> None: ...
        def play_sound(self, sound_id: str) -> None: ...
        def stop_sound(self, sound_id: str) -> None: ...
        def notify(self, message: str, kind: str) -> None: ...

Two implementations are provided:

    LoggingEffects — logs every effect at debug level. The default when a
                     session is built without a sink.
    QueuedEffects  — records effects in order so a client can drain them
                     with each projection (used by the HTTP service).
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

logger = logging.getLogger(__name__)

HapticCategory = Literal[
    "suspense",
    "dramatic",
    "insight",
    "scene_transition",
    "clue_discovered",
    "suspect_revealed",
    "timer_warning",
    "case_solved",
    "choice_made",
    "text_reveal",
    "game_over",
]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class EffectSink(Protocol):
    def haptic(self, category: str) -> None: ...

    def play_sound(self, sound_id: str) -> None: ...

    def stop_sound(self, sound_id: str) -> None: ...

    def notify(self, message: str, kind: str) -> None: ...


# ---------------------------------------------------------------------------
# LoggingEffects
# ---------------------------------------------------------------------------

class LoggingEffects:
    """Logs effects and does nothing else."""

    def haptic(self, category: str) -> None:
        logger.debug("haptic category=%s", category)

    def play_sound(self, sound_id: str) -> None:
        logger.debug("play_sound id=%s", sound_id)

    def stop_sound(self, sound_id: str) -> None:
        logger.debug("stop_sound id=%s", sound_id)

    def notify(self, message: str, kind: str) -> None:
        logger.debug("notify kind=%s message=%r", kind, message)


# ---------------------------------------------------------------------------
# QueuedEffects
# ---------------------------------------------------------------------------

class QueuedEffects:
    """Collects effects as plain dicts until a client drains them.

    Event shapes:
      {"type": "haptic", "category": ...}
      {"type": "sound", "action": "play" | "stop", "sound_id": ...}
      {"type": "notification", "message": ..., "kind": ...}
    """

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []

    def haptic(self, category: str) -> None:
        self._events.append({"type": "haptic", "category": category})

    def play_sound(self, sound_id: str) -> None:
        self._events.append({"type": "sound", "action": "play", "sound_id": sound_id})

    def stop_sound(self, sound_id: str) -> None:
        self._events.append({"type": "sound", "action": "stop", "sound_id": sound_id})

    def notify(self, message: str, kind: str) -> None:
        self._events.append({"type": "notification", "message": message, "kind": kind})

    @property
    def pending(self) -> list[dict[str, Any]]:
        return list(self._events)

    def haptics(self) -> list[str]:
        return [e["category"] for e in self._events if e["type"] == "haptic"]

    def drain(self) -> list[dict[str, Any]]:
        events, self._events = self._events, []
        return events
