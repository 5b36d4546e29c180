"""Core domain models.

Every engine component and storage function operates on these types.
Pydantic is used for validation and serialisation at every data boundary:
frames arriving from the story runtime, snapshots going to and from the
persistence store, and the projection handed to the presentation layer.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, Field

Mood = Literal[
    "normal",
    "dark",
    "tense",
    "horror",
    "hope",
    "mystery",
    "investigation",
    "conflict",
    "stakeout",
    "pressure",
    "discovery",
    "crossroads",
    "professional",
]

MOODS: frozenset[str] = frozenset(get_args(Mood))

ImagePosition = Literal["top", "background", "inline"]

IMAGE_POSITIONS: frozenset[str] = frozenset(get_args(ImagePosition))

StoryMode = Literal["normal", "interrogation"]

SuspectMood = Literal[
    "calm",
    "nervous",
    "defensive",
    "relaxed",
    "aggressive",
    "broken",
    "cooperative",
    "silent",
]

SUSPECT_MOODS: frozenset[str] = frozenset(get_args(SuspectMood))

VariableValue = bool | int | float | str


# ---------------------------------------------------------------------------
# Story runtime output
# ---------------------------------------------------------------------------

class Paragraph(BaseModel):
    """One line of story text with the tags attached to it."""

    text: str
    tags: list[str] = Field(default_factory=list)


class Choice(BaseModel):
    index: int
    text: str
    tags: list[str] = Field(default_factory=list)


class StoryFrame(BaseModel):
    """One unit of output from the story runtime.

    `variables` is a full snapshot, never a diff. `global_tags` are
    story-level tags applied once when the frame begins; paragraph tags are
    applied when their paragraph is disclosed.
    """

    paragraphs: list[Paragraph] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)
    variables: dict[str, VariableValue] = Field(default_factory=dict)
    is_end: bool = False
    global_tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Engine-owned state
# ---------------------------------------------------------------------------

class PresentationState(BaseModel):
    """Tag-driven presentation state. Mutated only by the tag interpreter."""

    mood: Mood = "normal"
    chapter: int = Field(default=1, ge=1)
    title: str = ""
    scene_image: str | None = None
    image_position: ImagePosition = "top"
    image_loaded: bool = False
    mode: StoryMode = "normal"
    vision_active: bool = False


class InterrogationState(BaseModel):
    """Nested sub-session state; exists only while mode is interrogation."""

    subject_id: str
    subject_name: str
    pressure: int = Field(default=0, ge=0, le=100)
    rapport: int = Field(default=0, ge=0, le=100)
    time_budget_seconds: int
    max_time_seconds: int
    suspect_mood: SuspectMood = "nervous"
    questions_asked: int = 0
    clues_revealed: list[str] = Field(default_factory=list)
    confession_obtained: bool = False
    tactical_hint: str = ""


class RevealCursor(BaseModel):
    displayed_count: int = 0
    is_revealing: bool = False
    skipped: bool = False


class SessionSnapshot(BaseModel):
    """Persisted playback position.

    `materialized_paragraphs` duplicates what the runtime could regenerate,
    but the runtime's continue may return nothing right after a load, so
    the cache is what guarantees the player sees the same content again.
    """

    runtime_state: str
    materialized_paragraphs: list[Paragraph] = Field(default_factory=list)
    presentation: PresentationState | None = None
    interrogation: InterrogationState | None = None


# ---------------------------------------------------------------------------
# Presentation projection
# ---------------------------------------------------------------------------

class VisibleParagraph(BaseModel):
    text: str
    tags: list[str] = Field(default_factory=list)
    variant: str = "narration"


class Projection(BaseModel):
    """Everything the presentation layer needs for one render tick."""

    visible_paragraphs: list[VisibleParagraph] = Field(default_factory=list)
    available_choices: list[Choice] = Field(default_factory=list)
    choice_view: Literal["normal", "interrogation"] = "normal"
    is_revealing: bool = False
    skipped: bool = False
    mood: Mood = "normal"
    chapter: int = 1
    title: str = ""
    scene_image: str | None = None
    image_position: ImagePosition = "top"
    image_loaded: bool = False
    mode: StoryMode = "normal"
    vision_active: bool = False
    interrogation: InterrogationState | None = None
    tactical_hint: str = ""
    variables: dict[str, VariableValue] = Field(default_factory=dict)
    is_end: bool = False
    error: str | None = None


class EngineSettings(BaseModel):
    """Engine knobs that are content decisions rather than timing contract."""

    image_base: str = "/investigations/"
    vision_seconds: int = 8
    default_interrogation_seconds: int = 300
