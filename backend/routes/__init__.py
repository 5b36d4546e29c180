"""FastAPI API endpoints under /api.

Endpoint groups: health and settings, stories (bundled + uploaded, saved
progress), and play sessions. A session is opened for a story and then
driven by tap/choose calls; every response carries the current projection
and the effects queued since the previous response.
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router
from .stories import router as stories_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(stories_router)
router.include_router(sessions_router)
