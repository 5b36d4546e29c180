"""Story runtime adapters — the black-box narrative VM the engine drives.

Every runtime implementation must match this protocol:

    class StoryRuntime(Protocol):
        async def reset(self) -> StoryFrame: ...
        async def continue_story(self) -> StoryFrame: ...
        async def choose(self, index: int) -> StoryFrame: ...
        async def serialize_state(self) -> str: ...
        async def load_state(self, state: str) -> None: ...

`continue_story` advances past already-resolved internal state. Right
after `load_state` it may legitimately return zero paragraphs because the
VM's cursor had already moved past them when the state was saved; the
persistence bridge covers for that with its paragraph cache.

Two implementations are provided:

    HttpStoryRuntime — async HTTP client for a story runtime service.
    ScriptedRuntime  — in-memory knot graph. Used for bundled demo stories
                       and for tests; reproduces the "continue returns
                       nothing after load" behaviour of a real VM.

Errors from any runtime are StoryRuntimeError. The engine never retries:
replaying a choice against a VM is not idempotent.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from story_player.models import Choice, Paragraph, StoryFrame, VariableValue

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class StoryRuntime(Protocol):
    async def reset(self) -> StoryFrame: ...

    async def continue_story(self) -> StoryFrame: ...

    async def choose(self, index: int) -> StoryFrame: ...

    async def serialize_state(self) -> str: ...

    async def load_state(self, state: str) -> None: ...


# ---------------------------------------------------------------------------
# HttpStoryRuntime — talks to a remote runtime service
# ---------------------------------------------------------------------------

class HttpStoryRuntime:
    """Async HTTP client for a story runtime service.

    Wire format (JSON):
      POST {base}/stories/{story_id}/reset     -> StoryFrame
      POST {base}/stories/{story_id}/continue  -> StoryFrame
      POST {base}/stories/{story_id}/choose    {"index": n} -> StoryFrame
      GET  {base}/stories/{story_id}/state     -> {"state": "<opaque>"}
      PUT  {base}/stories/{story_id}/state     {"state": "<opaque>"}

    Args:
        runtime_url: Base URL of the service, e.g. "http://localhost:7010".
        story_id:    Which compiled story to drive.
        api_key:     Bearer token, or empty string if not required.
        timeout:     HTTP timeout in seconds. Defaults to 30.
    """

    def __init__(
        self,
        runtime_url: str,
        story_id: str,
        api_key: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = runtime_url.rstrip("/")
        self._story_id = story_id
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _url(self, action: str) -> str:
        return f"{self._base_url}/stories/{self._story_id}/{action}"

    async def _request(self, method: str, action: str, body: dict | None = None) -> Any:
        url = self._url(action)
        logger.debug("runtime call method=%s url=%s", method, url)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method, url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise StoryRuntimeError(f"Cannot connect to story runtime at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise StoryRuntimeError(
                f"Story runtime returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise StoryRuntimeError(f"Story runtime timed out after {self._timeout}s") from e

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoryRuntimeError("Story runtime returned invalid JSON") from e

    def _parse_frame(self, data: Any) -> StoryFrame:
        try:
            return StoryFrame.model_validate(data)
        except ValidationError as e:
            raise StoryRuntimeError(f"Malformed story frame: {e.error_count()} error(s)") from e

    async def reset(self) -> StoryFrame:
        return self._parse_frame(await self._request("POST", "reset"))

    async def continue_story(self) -> StoryFrame:
        return self._parse_frame(await self._request("POST", "continue"))

    async def choose(self, index: int) -> StoryFrame:
        return self._parse_frame(await self._request("POST", "choose", {"index": index}))

    async def serialize_state(self) -> str:
        data = await self._request("GET", "state")
        if not isinstance(data, dict) or not isinstance(data.get("state"), str):
            raise StoryRuntimeError("Unexpected state response from story runtime")
        return data["state"]

    async def load_state(self, state: str) -> None:
        await self._request("PUT", "state", {"state": state})


# ---------------------------------------------------------------------------
# ScriptedRuntime — in-memory knot graph
# ---------------------------------------------------------------------------

class ScriptedChoice(BaseModel):
    text: str
    goto: str
    tags: list[str] = Field(default_factory=list)
    set: dict[str, VariableValue] = Field(default_factory=dict)


class Knot(BaseModel):
    """A node of the story graph. A knot without choices ends the story."""

    paragraphs: list[Paragraph] = Field(default_factory=list)
    choices: list[ScriptedChoice] = Field(default_factory=list)
    set: dict[str, VariableValue] = Field(default_factory=dict)


class ScriptedStory(BaseModel):
    title: str = ""
    start: str
    knots: dict[str, Knot]
    variables: dict[str, VariableValue] = Field(default_factory=dict)
    global_tags: list[str] = Field(default_factory=list)


class ScriptedRuntime:
    """Plays a ScriptedStory. No network calls.

    Internal state is (knot, pending, variables). `pending` means the
    current knot's paragraphs have not been emitted yet; once a frame has
    been produced it is False, so continue_story after a load returns the
    choices with no paragraphs, as a compiled VM does.
    """

    def __init__(self, story: ScriptedStory | dict[str, Any]) -> None:
        try:
            self._story = (
                story if isinstance(story, ScriptedStory) else ScriptedStory.model_validate(story)
            )
        except ValidationError as e:
            raise StoryRuntimeError(f"Malformed scripted story: {e.error_count()} error(s)") from e
        if self._story.start not in self._story.knots:
            raise StoryRuntimeError(f"Start knot {self._story.start!r} does not exist")
        self._knot = self._story.start
        self._pending = True
        self._variables: dict[str, VariableValue] = dict(self._story.variables)

    async def reset(self) -> StoryFrame:
        self._knot = self._story.start
        self._pending = True
        self._variables = dict(self._story.variables)
        return await self.continue_story()

    async def continue_story(self) -> StoryFrame:
        knot = self._story.knots[self._knot]
        paragraphs: list[Paragraph] = []
        if self._pending:
            self._variables.update(knot.set)
            paragraphs = [p.model_copy(deep=True) for p in knot.paragraphs]
            self._pending = False
        return StoryFrame(
            paragraphs=paragraphs,
            choices=[
                Choice(index=i, text=c.text, tags=list(c.tags))
                for i, c in enumerate(knot.choices)
            ],
            variables=dict(self._variables),
            is_end=not knot.choices,
            global_tags=list(self._story.global_tags),
        )

    async def choose(self, index: int) -> StoryFrame:
        choices = self._story.knots[self._knot].choices
        if not 0 <= index < len(choices):
            raise StoryRuntimeError(f"Choice index {index} is not available")
        choice = choices[index]
        if choice.goto not in self._story.knots:
            raise StoryRuntimeError(f"Choice leads to unknown knot {choice.goto!r}")
        self._variables.update(choice.set)
        self._knot = choice.goto
        self._pending = True
        return await self.continue_story()

    async def serialize_state(self) -> str:
        return json.dumps({
            "knot": self._knot,
            "pending": self._pending,
            "variables": self._variables,
        })

    async def load_state(self, state: str) -> None:
        try:
            data = json.loads(state)
            knot = data["knot"]
            pending = bool(data["pending"])
            variables = dict(data["variables"])
        except (TypeError, ValueError, KeyError) as e:
            raise StoryRuntimeError(f"Invalid runtime state: {e}") from e
        if knot not in self._story.knots:
            raise StoryRuntimeError(f"Invalid runtime state: unknown knot {knot!r}")
        self._knot = knot
        self._pending = pending
        self._variables = variables


# ---------------------------------------------------------------------------
# StoryRuntimeError — raised by every runtime for all failures
# ---------------------------------------------------------------------------

class StoryRuntimeError(RuntimeError):
    """Raised when the story runtime cannot be reached, rejects a call, or
    returns data the engine cannot use."""
