"""Render classification for disclosed paragraphs.

Tags are authoritative. The text-pattern rules below them exist for
stories written before authors tagged their paragraphs; they are kept as a
fallback and log at debug level whenever they decide a variant, so content
that still relies on them is easy to find.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Literal

from story_player.tags import get_tag_value, has_tag

logger = logging.getLogger(__name__)

RenderVariant = Literal[
    "narration",
    "dialogue",
    "ending",
    "clue",
    "warning",
    "important",
    "document",
    "date",
    "location",
    "header",
    "list",
    "pause",
]

Rule = tuple[RenderVariant, Callable[[str, list[str]], bool]]

_DATE_LINE = re.compile(
    r"^\d{1,2}\s+(january|february|march|april|may|june|july|august|september|"
    r"october|november|december)\s+\d{4}",
    re.IGNORECASE,
)
_YEAR_LINE = re.compile(r"^\d{4}(-\d{4})?(\s+years?)?$", re.IGNORECASE)
_DASH_DIALOGUE = re.compile(r"^(—|–|- )")
_LIST_ITEM = re.compile(r"\n(-|•|\d+[.)])")
_PAUSE = re.compile(r"^(\.\.\.|…)$")


def _typed(kind: str) -> Callable[[str, list[str]], bool]:
    return lambda text, tags: get_tag_value(tags, "type") == kind


TAG_RULES: list[Rule] = [
    ("dialogue", lambda text, tags: has_tag(tags, "speaker")),
    ("ending", lambda text, tags: has_tag(tags, "ending")),
    ("clue", lambda text, tags: has_tag(tags, "clue")),
    ("warning", lambda text, tags: has_tag(tags, "warning") or has_tag(tags, "danger")),
    ("important", lambda text, tags: has_tag(tags, "important") or has_tag(tags, "revelation")),
    ("document", _typed("document")),
    ("date", _typed("date")),
    ("location", _typed("location")),
    ("header", _typed("header")),
]

TEXT_RULES: list[Rule] = [
    ("date", lambda text, tags: bool(_DATE_LINE.match(text.strip()))),
    ("date", lambda text, tags: bool(_YEAR_LINE.match(text.strip()))),
    ("header", lambda text, tags: text.startswith(("═", "─"))),
    ("dialogue", lambda text, tags: bool(_DASH_DIALOGUE.match(text))),
    ("list", lambda text, tags: bool(_LIST_ITEM.search(text))),
    ("pause", lambda text, tags: bool(_PAUSE.match(text.strip()))),
]


def classify_paragraph(text: str, tags: list[str]) -> RenderVariant:
    """Pick the render variant for one paragraph. First matching rule wins."""
    for variant, matches in TAG_RULES:
        if matches(text, tags):
            return variant
    for variant, matches in TEXT_RULES:
        if matches(text, tags):
            logger.debug("text fallback classified %r as %s", text[:40], variant)
            return variant
    return "narration"
