"""Live session registry for the HTTP service.

Each open session owns a Session, the QueuedEffects it reports to and the
story it plays. Sessions live in process memory; their snapshots live in
storage, keyed by story slug, so a later session can resume them.
"""

import logging
import uuid
from dataclasses import dataclass

from story_player.effects import QueuedEffects
from story_player.models import EngineSettings
from story_player.runtime import HttpStoryRuntime, ScriptedRuntime, StoryRuntime
from story_player.session import Session

from backend import storage

logger = logging.getLogger(__name__)


class StoryNotFoundError(LookupError):
    pass


@dataclass
class LiveSession:
    session_id: str
    story_id: str
    session: Session
    effects: QueuedEffects


_sessions: dict[str, LiveSession] = {}


def build_runtime(story_id: str, config: dict) -> StoryRuntime:
    """Remote runtime when one is configured, else the stored scripted story."""
    if config.get("runtime_url"):
        return HttpStoryRuntime(config["runtime_url"], story_id, config.get("runtime_api_key", ""))
    story = storage.get_story(story_id)
    if story is None:
        raise StoryNotFoundError(story_id)
    return ScriptedRuntime({k: v for k, v in story.items() if k not in ("slug", "source")})


def engine_settings(config: dict) -> EngineSettings:
    return EngineSettings(
        image_base=config["image_base"],
        vision_seconds=config["vision_seconds"],
        default_interrogation_seconds=config["default_interrogation_seconds"],
    )


async def open_session(story_id: str, resume: bool = False) -> LiveSession:
    """Create, register and start (or resume) a session for `story_id`.

    Raises StoryNotFoundError, StoryRuntimeError or SnapshotError. A session
    that fails to start is closed and not registered.
    """
    config = storage.get_config()
    runtime = build_runtime(story_id, config)
    effects = QueuedEffects()
    store = storage.FileSnapshotStore() if config["autosave"] or resume else None
    session = Session(
        runtime,
        effects=effects,
        store=store,
        snapshot_key=story_id,
        settings=engine_settings(config),
        on_tag_observed=lambda key, value: logger.debug("observed tag %s=%r", key, value),
    )
    try:
        if resume:
            await session.resume()
        else:
            await session.start()
    except Exception:
        session.close()
        raise

    live = LiveSession(
        session_id=uuid.uuid4().hex,
        story_id=story_id,
        session=session,
        effects=effects,
    )
    _sessions[live.session_id] = live
    logger.info("opened session %s story=%s resume=%s", live.session_id, story_id, resume)
    return live


def get_session(session_id: str) -> LiveSession | None:
    return _sessions.get(session_id)


def close_session(session_id: str) -> bool:
    live = _sessions.pop(session_id, None)
    if live is None:
        return False
    live.session.close()
    return True


def close_all() -> None:
    for session_id in list(_sessions):
        close_session(session_id)
