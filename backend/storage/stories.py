"""Story CRUD (merged presets + user data).

A story file is a scripted story graph as accepted by ScriptedRuntime:
{"title", "start", "knots", "variables", "global_tags"}.
"""

import json
from datetime import datetime, timezone
from typing import Any

from .core import is_slug, preset_stories_dir, slugify, stories_dir, story_path


def list_stories() -> list[dict[str, Any]]:
    """Summaries of every available story; user stories shadow presets."""
    by_slug: dict[str, dict[str, Any]] = {}
    if preset_stories_dir().is_dir():
        for path in sorted(preset_stories_dir().glob("*.json")):
            by_slug[path.stem] = _summary(path.stem, json.loads(path.read_text()), "preset")
    for path in sorted(stories_dir().glob("*.json")):
        by_slug[path.stem] = _summary(path.stem, json.loads(path.read_text()), "user")
    return list(by_slug.values())


def get_story(slug: str) -> dict[str, Any] | None:
    if not is_slug(slug):
        return None
    for source, path in (("user", story_path(slug)), ("preset", story_path(slug, preset=True))):
        if path.is_file():
            data = json.loads(path.read_text())
            data["slug"] = slug
            data["source"] = source
            return data
    return None


def create_story(story: dict[str, Any]) -> dict[str, Any]:
    title = story.get("title") or "Untitled"
    slug = slugify(title)
    path = story_path(slug)
    if path.exists():
        raise FileExistsError(f"Story '{title}' already exists (slug: {slug})")
    if story_path(slug, preset=True).is_file():
        raise FileExistsError(f"Story '{title}' already exists as preset (slug: {slug})")
    data = {k: v for k, v in story.items() if k not in ("slug", "source")}
    data["title"] = title
    data["created_at"] = datetime.now(timezone.utc).isoformat()
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False))
    return _summary(slug, data, "user")


def delete_story(slug: str) -> bool:
    """Delete a user story. Presets cannot be deleted."""
    if not is_slug(slug):
        return False
    path = story_path(slug)
    if not path.is_file():
        return False
    path.unlink()
    return True


def _summary(slug: str, data: dict[str, Any], source: str) -> dict[str, Any]:
    return {
        "slug": slug,
        "title": data.get("title", slug),
        "description": data.get("description", ""),
        "source": source,
    }
