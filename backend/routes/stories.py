"""Story listing, upload and saved-progress endpoints."""

from fastapi import APIRouter, HTTPException

from backend import storage
from story_player.runtime import ScriptedRuntime, StoryRuntimeError

from .models import CreateStoryBody

router = APIRouter()


@router.get("/stories")
async def list_stories():
    """List bundled and uploaded stories."""
    return storage.list_stories()


@router.get("/stories/{slug}")
async def get_story(slug: str):
    """Get a story graph, plus whether saved progress exists."""
    story = storage.get_story(slug)
    if story is None:
        raise HTTPException(404, "Story not found")
    story["has_snapshot"] = storage.has_snapshot(slug)
    return story


@router.post("/stories", status_code=201)
async def create_story(body: CreateStoryBody):
    """Upload a scripted story. The graph is validated before it is stored."""
    data = body.model_dump()
    try:
        ScriptedRuntime(data)
    except StoryRuntimeError as e:
        raise HTTPException(422, str(e))
    try:
        return storage.create_story(data)
    except FileExistsError as e:
        raise HTTPException(409, str(e))


@router.delete("/stories/{slug}")
async def delete_story(slug: str):
    """Delete an uploaded story. Bundled stories cannot be deleted."""
    if not storage.delete_story(slug):
        raise HTTPException(404, "Story not found")
    return {"ok": True}


@router.delete("/stories/{slug}/snapshot")
async def delete_snapshot(slug: str):
    """Forget saved progress for a story."""
    if not storage.delete_snapshot(slug):
        raise HTTPException(404, "No saved progress")
    return {"ok": True}
