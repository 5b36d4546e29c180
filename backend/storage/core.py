"""Storage roots, per-record file paths and slugs.

Every record lives in its own `<slug>.json`. Paths are only ever built from
slugs, so a story id taken from a URL cannot point outside its directory.
"""

import re
import unicodedata
from pathlib import Path

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_data_dir: Path | None = None
_presets_dir: Path | None = None


def slugify(title: str) -> str:
    """Convert a story title to a filesystem-safe slug.

    "Orlov's Alibi" → "orlovs-alibi"
    """
    text = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"['\"]", "", text.lower())
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-") or "untitled"


def is_slug(value: str) -> bool:
    return bool(_SLUG_RE.match(value))


def init_storage(data_dir: Path, presets_dir: Path | None = None) -> None:
    """Point storage at `data_dir` and create its record directories.

    Bundled stories are read from `presets_dir`, default `<repo>/presets`.
    """
    global _data_dir, _presets_dir

    _data_dir = data_dir
    _presets_dir = presets_dir or Path(__file__).resolve().parents[2] / "presets"
    for sub in (stories_dir(), snapshots_dir()):
        sub.mkdir(parents=True, exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def presets_dir() -> Path:
    assert _presets_dir is not None, "Call init_storage() before using storage"
    return _presets_dir


def stories_dir() -> Path:
    return data_dir() / "stories"


def preset_stories_dir() -> Path:
    return presets_dir() / "stories"


def snapshots_dir() -> Path:
    return data_dir() / "snapshots"


def story_path(slug: str, preset: bool = False) -> Path:
    if not is_slug(slug):
        raise ValueError(f"Not a story slug: {slug!r}")
    return (preset_stories_dir() if preset else stories_dir()) / f"{slug}.json"


def snapshot_path(key: str) -> Path:
    """Snapshot keys are story slugs; anything else is slugified first."""
    return snapshots_dir() / f"{key if is_slug(key) else slugify(key)}.json"
