"""File-based JSON storage.

Data layout:
  data/
    stories/             User-uploaded scripted stories (<slug>.json)
    snapshots/           Session snapshots, one per snapshot key (<key>.json)
    config.json          App settings (story runtime connection, engine settings)
  presets/
    stories/             Bundled read-only stories (merged at read time)

Preset merging: list_stories() and get_story() merge preset + user data;
user data wins on slug collision. Deleting a user story reveals the preset.

Config: get_config() returns defaults merged with stored values and the
STORY_RUNTIME_URL / STORY_RUNTIME_API_KEY environment variables.
update_config() applies partial updates of known keys.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    is_slug,
    preset_stories_dir,
    presets_dir,
    slugify,
    snapshot_path,
    snapshots_dir,
    stories_dir,
    story_path,
)

from .stories import (  # noqa: F401
    create_story,
    delete_story,
    get_story,
    list_stories,
)

from .snapshots import (  # noqa: F401
    FileSnapshotStore,
    has_snapshot,
    delete_snapshot,
    get_snapshot,
    put_snapshot,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
