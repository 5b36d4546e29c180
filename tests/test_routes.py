"""Tests for the HTTP API — sessions, stories and settings."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.routes import router
from story_player.runtime import StoryRuntimeError


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(router, prefix="/api")
    with TestClient(app) as c:
        yield c


def _open(client: TestClient, **body) -> dict:
    resp = client.post("/api/sessions", json={"story_id": "the-night-shift", **body})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestBasics:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_settings_patch(self, client: TestClient) -> None:
        resp = client.patch("/api/settings", json={"vision_seconds": 3})
        assert resp.json()["vision_seconds"] == 3
        assert client.get("/api/settings").json()["vision_seconds"] == 3

    def test_list_stories(self, client: TestClient) -> None:
        slugs = [s["slug"] for s in client.get("/api/stories").json()]
        assert "the-night-shift" in slugs

    def test_get_story(self, client: TestClient) -> None:
        story = client.get("/api/stories/the-night-shift").json()
        assert story["title"] == "The Night Shift"
        assert story["has_snapshot"] is False
        assert client.get("/api/stories/nope").status_code == 404

    def test_upload_story(self, client: TestClient) -> None:
        body = {"title": "Cold Case", "start": "a", "knots": {"a": {"paragraphs": [{"text": "Snow."}]}}}
        resp = client.post("/api/stories", json=body)
        assert resp.status_code == 201
        assert resp.json()["slug"] == "cold-case"
        assert client.post("/api/stories", json=body).status_code == 409

    def test_upload_invalid_story(self, client: TestClient) -> None:
        body = {"title": "Broken", "start": "missing", "knots": {"a": {}}}
        assert client.post("/api/stories", json=body).status_code == 422


class TestSessions:
    def test_open_session(self, client: TestClient) -> None:
        state = _open(client)
        p = state["projection"]
        assert p["title"] == "The Night Shift"
        assert p["is_revealing"] is True
        assert p["available_choices"] == []
        assert state["story_id"] == "the-night-shift"

    def test_unknown_story(self, client: TestClient) -> None:
        resp = client.post("/api/sessions", json={"story_id": "nope"})
        assert resp.status_code == 404

    def test_tap_then_choose(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]

        state = client.post(f"/api/sessions/{sid}/tap").json()
        p = state["projection"]
        assert p["is_revealing"] is False
        assert len(p["visible_paragraphs"]) == 4
        assert p["visible_paragraphs"][0]["variant"] == "date"
        assert p["scene_image"] == "/investigations/depot.jpg"
        assert [c["index"] for c in p["available_choices"]] == [0, 1]
        haptics = [e["category"] for e in state["effects"] if e["type"] == "haptic"]
        assert "text_reveal" in haptics
        assert {"type": "sound", "action": "play", "sound_id": "rain"} in state["effects"]

        state = client.post(f"/api/sessions/{sid}/choose", json={"index": 0}).json()
        assert state["accepted"] is True
        assert state["projection"]["variables"]["evidence"] == 1

    def test_choose_while_revealing_skips(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        state = client.post(f"/api/sessions/{sid}/choose", json={"index": 0}).json()
        assert state["accepted"] is False
        assert state["projection"]["is_revealing"] is False

    def test_choice_not_available(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        client.post(f"/api/sessions/{sid}/tap")
        resp = client.post(f"/api/sessions/{sid}/choose", json={"index": 9})
        assert resp.status_code == 400

    def test_effects_drained_once(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        client.post(f"/api/sessions/{sid}/tap")
        again = client.get(f"/api/sessions/{sid}").json()
        assert not any(e.get("category") == "text_reveal" for e in again["effects"])

    def test_snapshot_and_resume(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        client.post(f"/api/sessions/{sid}/tap")
        snapshot = client.get(f"/api/sessions/{sid}/snapshot").json()
        assert len(snapshot["materialized_paragraphs"]) == 4
        assert snapshot["presentation"]["mood"] == "dark"
        client.delete(f"/api/sessions/{sid}")

        assert client.get("/api/stories/the-night-shift").json()["has_snapshot"] is True
        state = _open(client, resume=True)
        p = state["projection"]
        assert len(p["visible_paragraphs"]) == 4
        assert p["skipped"] is True
        assert p["mood"] == "dark"
        assert len(p["available_choices"]) == 2

    def test_resume_without_snapshot(self, client: TestClient) -> None:
        resp = client.post("/api/sessions", json={"story_id": "the-night-shift", "resume": True})
        assert resp.status_code == 409

    def test_close_session(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        assert client.delete(f"/api/sessions/{sid}").json() == {"ok": True}
        assert client.get(f"/api/sessions/{sid}").status_code == 404
        assert client.delete(f"/api/sessions/{sid}").status_code == 404

    def test_runtime_failure_is_502(self, client: TestClient) -> None:
        sid = _open(client)["session_id"]
        client.post(f"/api/sessions/{sid}/tap")
        failing = AsyncMock(side_effect=StoryRuntimeError("boom"))
        with patch("story_player.runtime.ScriptedRuntime.choose", failing):
            resp = client.post(f"/api/sessions/{sid}/choose", json={"index": 0})
        assert resp.status_code == 502
        assert client.get(f"/api/sessions/{sid}").json()["projection"]["error"] == "could not continue"

    def test_remote_runtime_unreachable(self, client: TestClient) -> None:
        client.patch("/api/settings", json={"runtime_url": "http://localhost:1"})
        failing = AsyncMock(side_effect=StoryRuntimeError("Cannot connect"))
        with patch("story_player.runtime.HttpStoryRuntime.reset", failing):
            resp = client.post("/api/sessions", json={"story_id": "anything"})
        assert resp.status_code == 502
