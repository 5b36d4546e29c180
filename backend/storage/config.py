"""Global app configuration (story runtime connection, engine settings)."""

import json
import os
from pathlib import Path
from typing import Any

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "runtime_url": "",
    "runtime_api_key": "",
    "image_base": "/investigations/",
    "vision_seconds": 8,
    "default_interrogation_seconds": 300,
    "autosave": True,
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values.

    STORY_RUNTIME_URL / STORY_RUNTIME_API_KEY from the environment fill in
    the runtime connection when config.json does not set one.
    """
    config = dict(_CONFIG_DEFAULTS)
    config["runtime_url"] = os.getenv("STORY_RUNTIME_URL", "")
    config["runtime_api_key"] = os.getenv("STORY_RUNTIME_API_KEY", "")
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for key in _CONFIG_DEFAULTS:
            if key in stored and stored[key] not in (None, ""):
                config[key] = stored[key]
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge known fields into stored config and persist. Returns full config."""
    path = _config_path()
    stored: dict[str, Any] = json.loads(path.read_text()) if path.is_file() else {}
    for key, value in fields.items():
        if key in _CONFIG_DEFAULTS:
            stored[key] = value
    path.write_text(json.dumps(stored, indent=2))
    return get_config()
