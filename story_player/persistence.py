"""Session persistence bridge.

A snapshot pairs the runtime's opaque serialized state with the paragraphs
the player has already seen. Restoring loads the state and asks the runtime
to continue; a VM whose cursor had already moved past the saved frame's text
answers with no paragraphs, and the cached ones are shown instead.
"""

from __future__ import annotations

import logging
from typing import Protocol

from story_player.models import (
    InterrogationState,
    Paragraph,
    PresentationState,
    SessionSnapshot,
    StoryFrame,
)
from story_player.runtime import StoryRuntime, StoryRuntimeError

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """A snapshot could not be written or brought back to life."""


class SnapshotStore(Protocol):
    def get(self, key: str) -> SessionSnapshot | None: ...

    def put(self, key: str, snapshot: SessionSnapshot) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self._snapshots: dict[str, SessionSnapshot] = {}

    def get(self, key: str) -> SessionSnapshot | None:
        snapshot = self._snapshots.get(key)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    def put(self, key: str, snapshot: SessionSnapshot) -> None:
        self._snapshots[key] = snapshot.model_copy(deep=True)

    def delete(self, key: str) -> None:
        self._snapshots.pop(key, None)


class PersistenceBridge:
    """Moves playback position between a runtime and a SnapshotStore."""

    def __init__(self, runtime: StoryRuntime) -> None:
        self._runtime = runtime

    async def snapshot(
        self,
        paragraphs: list[Paragraph],
        displayed_count: int,
        presentation: PresentationState | None = None,
        interrogation: InterrogationState | None = None,
    ) -> SessionSnapshot:
        """Capture the runtime state plus the paragraphs disclosed so far."""
        try:
            runtime_state = await self._runtime.serialize_state()
        except StoryRuntimeError as e:
            raise SnapshotError(f"Could not serialize runtime state: {e}") from e
        return SessionSnapshot(
            runtime_state=runtime_state,
            materialized_paragraphs=[p.model_copy(deep=True) for p in paragraphs[:displayed_count]],
            presentation=presentation.model_copy(deep=True) if presentation else None,
            interrogation=interrogation.model_copy(deep=True) if interrogation else None,
        )

    async def restore(self, snapshot: SessionSnapshot) -> tuple[StoryFrame, bool]:
        """Load `snapshot` into the runtime and continue.

        Returns the frame to present and whether its paragraphs came from the
        snapshot cache. Choices and variables always come from the runtime.
        Raises SnapshotError when the runtime rejects the saved state.
        """
        try:
            await self._runtime.load_state(snapshot.runtime_state)
        except StoryRuntimeError as e:
            raise SnapshotError(f"Could not load runtime state: {e}") from e

        frame = await self._runtime.continue_story()
        if frame.paragraphs:
            return frame, False

        logger.debug(
            "restore: runtime returned no paragraphs, using %d cached",
            len(snapshot.materialized_paragraphs),
        )
        cached = [p.model_copy(deep=True) for p in snapshot.materialized_paragraphs]
        return frame.model_copy(update={"paragraphs": cached}), True

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    @staticmethod
    def save(store: SnapshotStore, key: str, snapshot: SessionSnapshot) -> None:
        try:
            store.put(key, snapshot)
        except OSError as e:
            raise SnapshotError(f"Could not write snapshot {key!r}: {e}") from e

    @staticmethod
    def load(store: SnapshotStore, key: str) -> SessionSnapshot | None:
        try:
            return store.get(key)
        except OSError as e:
            raise SnapshotError(f"Could not read snapshot {key!r}: {e}") from e
