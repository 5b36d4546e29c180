"""Play-session endpoints: open, poll, tap, choose, snapshot, close."""

from typing import Any

from fastapi import APIRouter, HTTPException

from backend import sessions
from backend.sessions import LiveSession, StoryNotFoundError
from story_player.persistence import SnapshotError
from story_player.runtime import StoryRuntimeError

from .models import ChooseBody, CreateSessionBody

router = APIRouter()


def _live(session_id: str) -> LiveSession:
    live = sessions.get_session(session_id)
    if live is None:
        raise HTTPException(404, "Session not found")
    return live


def _state(live: LiveSession) -> dict[str, Any]:
    return {
        "session_id": live.session_id,
        "story_id": live.story_id,
        "projection": live.session.projection().model_dump(),
        "effects": live.effects.drain(),
    }


@router.post("/sessions", status_code=201)
async def create_session(body: CreateSessionBody):
    """Start a story, or resume it from its saved snapshot."""
    try:
        live = await sessions.open_session(body.story_id, resume=body.resume)
    except StoryNotFoundError:
        raise HTTPException(404, "Story not found")
    except SnapshotError as e:
        raise HTTPException(409, str(e))
    except StoryRuntimeError as e:
        raise HTTPException(502, str(e))
    return _state(live)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Current projection plus effects queued since the last poll."""
    return _state(_live(session_id))


@router.post("/sessions/{session_id}/tap")
async def tap(session_id: str):
    """Fast-forward the current reveal."""
    live = _live(session_id)
    skipped = live.session.tap_to_continue()
    return {"skipped": skipped, **_state(live)}


@router.post("/sessions/{session_id}/choose")
async def choose(session_id: str, body: ChooseBody):
    """Pick a choice. While text is still revealing this only fast-forwards."""
    live = _live(session_id)
    projection = live.session.projection()
    if not projection.is_revealing:
        indexes = {c.index for c in projection.available_choices}
        if body.index not in indexes:
            raise HTTPException(400, "Choice not available")
    try:
        accepted = await live.session.choose(body.index)
    except StoryRuntimeError as e:
        raise HTTPException(502, str(e))
    return {"accepted": accepted, **_state(live)}


@router.get("/sessions/{session_id}/snapshot")
async def get_snapshot(session_id: str):
    """Snapshot of the session as it stands now."""
    live = _live(session_id)
    await live.session.flush()
    try:
        snapshot = await live.session.snapshot()
    except SnapshotError as e:
        raise HTTPException(409, str(e))
    return snapshot.model_dump()


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    """Close a session. Its saved snapshot is kept."""
    if not sessions.close_session(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True}
