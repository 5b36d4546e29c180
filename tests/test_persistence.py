"""Tests for story_player.persistence."""

import json

import pytest

from story_player.models import Paragraph, PresentationState, SessionSnapshot
from story_player.persistence import InMemorySnapshotStore, PersistenceBridge, SnapshotError
from story_player.runtime import ScriptedRuntime, StoryRuntimeError

STORY = {
    "start": "a",
    "knots": {
        "a": {
            "paragraphs": [{"text": "First."}, {"text": "Second.", "tags": ["clue"]}],
            "choices": [{"text": "On", "goto": "b"}],
        },
        "b": {"paragraphs": [{"text": "Last."}]},
    },
}


class TestSnapshot:
    async def test_materializes_displayed_paragraphs(self) -> None:
        runtime = ScriptedRuntime(STORY)
        frame = await runtime.reset()
        bridge = PersistenceBridge(runtime)
        snapshot = await bridge.snapshot(frame.paragraphs, 1, PresentationState(mood="dark"))
        assert [p.text for p in snapshot.materialized_paragraphs] == ["First."]
        assert snapshot.presentation.mood == "dark"
        assert snapshot.interrogation is None
        assert json.loads(snapshot.runtime_state)["knot"] == "a"

    async def test_snapshot_is_detached(self) -> None:
        runtime = ScriptedRuntime(STORY)
        frame = await runtime.reset()
        presentation = PresentationState()
        snapshot = await PersistenceBridge(runtime).snapshot(frame.paragraphs, 2, presentation)
        presentation.mood = "horror"
        frame.paragraphs[0].text = "changed"
        assert snapshot.presentation.mood == "normal"
        assert snapshot.materialized_paragraphs[0].text == "First."


class TestRestore:
    async def test_cache_used_when_runtime_returns_nothing(self) -> None:
        runtime = ScriptedRuntime(STORY)
        frame = await runtime.reset()
        snapshot = await PersistenceBridge(runtime).snapshot(frame.paragraphs, 2)

        fresh = ScriptedRuntime(STORY)
        restored, used_cache = await PersistenceBridge(fresh).restore(snapshot)
        assert used_cache is True
        assert [p.text for p in restored.paragraphs] == ["First.", "Second."]
        assert restored.paragraphs[1].tags == ["clue"]
        assert [c.text for c in restored.choices] == ["On"]

    async def test_live_paragraphs_win(self) -> None:
        snapshot = SessionSnapshot(
            runtime_state=json.dumps({"knot": "b", "pending": True, "variables": {}}),
            materialized_paragraphs=[Paragraph(text="stale")],
        )
        restored, used_cache = await PersistenceBridge(ScriptedRuntime(STORY)).restore(snapshot)
        assert used_cache is False
        assert [p.text for p in restored.paragraphs] == ["Last."]

    async def test_choices_come_from_runtime(self) -> None:
        snapshot = SessionSnapshot(
            runtime_state=json.dumps({"knot": "b", "pending": False, "variables": {"x": 1}}),
            materialized_paragraphs=[Paragraph(text="cached")],
        )
        restored, _ = await PersistenceBridge(ScriptedRuntime(STORY)).restore(snapshot)
        assert restored.choices == []
        assert restored.is_end is True
        assert restored.variables == {"x": 1}

    async def test_corrupt_state_raises(self) -> None:
        snapshot = SessionSnapshot(runtime_state="{{{")
        with pytest.raises(SnapshotError) as exc_info:
            await PersistenceBridge(ScriptedRuntime(STORY)).restore(snapshot)
        assert isinstance(exc_info.value.__cause__, StoryRuntimeError)


class TestStore:
    def test_in_memory_round_trip(self) -> None:
        store = InMemorySnapshotStore()
        snapshot = SessionSnapshot(runtime_state="s", materialized_paragraphs=[Paragraph(text="x")])
        PersistenceBridge.save(store, "k", snapshot)
        loaded = PersistenceBridge.load(store, "k")
        assert loaded == snapshot
        assert loaded is not snapshot

    def test_missing_key(self) -> None:
        assert InMemorySnapshotStore().get("nope") is None

    def test_delete(self) -> None:
        store = InMemorySnapshotStore()
        store.put("k", SessionSnapshot(runtime_state="s"))
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None

    def test_write_failure_wrapped(self) -> None:
        class BrokenStore(InMemorySnapshotStore):
            def put(self, key, snapshot):
                raise OSError("disk full")

        with pytest.raises(SnapshotError):
            PersistenceBridge.save(BrokenStore(), "k", SessionSnapshot(runtime_state="s"))

    def test_read_failure_wrapped(self) -> None:
        class BrokenStore(InMemorySnapshotStore):
            def get(self, key):
                raise OSError("permission denied")

        with pytest.raises(SnapshotError):
            PersistenceBridge.load(BrokenStore(), "k")
