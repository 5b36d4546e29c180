"""Session snapshots, one JSON file per snapshot key."""

from pydantic import ValidationError

from story_player.models import SessionSnapshot
from story_player.persistence import SnapshotError

from .core import snapshot_path


def get_snapshot(key: str) -> SessionSnapshot | None:
    path = snapshot_path(key)
    if not path.is_file():
        return None
    try:
        return SessionSnapshot.model_validate_json(path.read_text())
    except ValidationError as e:
        raise SnapshotError(f"Snapshot {key!r} is corrupt") from e


def put_snapshot(key: str, snapshot: SessionSnapshot) -> None:
    snapshot_path(key).write_text(snapshot.model_dump_json(indent=2))


def delete_snapshot(key: str) -> bool:
    path = snapshot_path(key)
    if not path.is_file():
        return False
    path.unlink()
    return True


class FileSnapshotStore:
    """SnapshotStore backed by the data directory."""

    def get(self, key: str) -> SessionSnapshot | None:
        return get_snapshot(key)

    def put(self, key: str, snapshot: SessionSnapshot) -> None:
        put_snapshot(key, snapshot)

    def delete(self, key: str) -> None:
        delete_snapshot(key)


def has_snapshot(key: str) -> bool:
    return snapshot_path(key).is_file()
