"""Session — one play-through of a story.

Flow:
  1. start() resets the runtime, or resume() restores a snapshot.
  2. The story's global tags are applied to the presentation state.
  3. The frame's paragraphs go to the reveal scheduler; each disclosed
     paragraph has its tags applied exactly once.
  4. When the reveal completes the session waits for choose(index).
  5. choose() calls the runtime and begins the next frame, until is_end.

A snapshot is autosaved after every frame transition and again whenever a
reveal completes, so the paragraph cache holds what the player has seen.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable

from story_player.classify import classify_paragraph
from story_player.effects import EffectSink, LoggingEffects
from story_player.interrogation import InterrogationMachine
from story_player.models import (
    EngineSettings,
    Paragraph,
    Projection,
    SessionSnapshot,
    StoryFrame,
    VariableValue,
    VisibleParagraph,
)
from story_player.persistence import PersistenceBridge, SnapshotError, SnapshotStore
from story_player.runtime import StoryRuntime, StoryRuntimeError
from story_player.scheduler import RevealScheduler
from story_player.tags import TagInterpreter, TagObserver, has_tag
from story_player.timers import AsyncioTimers, Timers

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "could not continue"

VariableObserver = Callable[[str, VariableValue | None, VariableValue], None]


class MessageClock:
    """Cosmetic in-story clock for message timestamps.

    Each call moves the clock forward by one to three minutes. Every
    session owns its own clock.
    """

    def __init__(self, hours: int = 16, minutes: int = 42, rng: random.Random | None = None) -> None:
        self.hours = hours
        self.minutes = minutes
        self._rng = rng or random.Random()

    def next(self) -> str:
        self.minutes += self._rng.randint(1, 3)
        if self.minutes >= 60:
            self.hours += 1
            self.minutes -= 60
        if self.hours >= 24:
            self.hours = 0
        return f"{self.hours}:{self.minutes:02d}"


class Session:
    """Drives one story runtime through reveal, tags, interrogation and saves.

    Args:
        runtime:            The story runtime to drive.
        effects:            Effect sink for haptics, audio and notifications.
        timers:             Where reveal, vision and countdown timers run.
        store:              Snapshot store; autosave is off without one.
        snapshot_key:       Key this session's snapshot is stored under.
        settings:           Engine settings (image base, vision and timer defaults).
        on_tag_observed:    Receives tags the engine does not handle itself.
        on_variable_change: Receives (name, old, new) for variables that
                            changed between frames.
        on_end:             Called once when an ending frame finishes revealing.
        on_time_up:         Called when an interrogation countdown reaches zero.
        clock:              Clock behind timestamp().
    """

    def __init__(
        self,
        runtime: StoryRuntime,
        *,
        effects: EffectSink | None = None,
        timers: Timers | None = None,
        store: SnapshotStore | None = None,
        snapshot_key: str = "default",
        settings: EngineSettings | None = None,
        on_tag_observed: TagObserver | None = None,
        on_variable_change: VariableObserver | None = None,
        on_end: Callable[[StoryFrame], None] | None = None,
        on_time_up: Callable[[], None] | None = None,
        clock: MessageClock | None = None,
    ) -> None:
        self._runtime = runtime
        self._effects = effects or LoggingEffects()
        timers = timers or AsyncioTimers()
        settings = settings or EngineSettings()
        self._store = store
        self.snapshot_key = snapshot_key
        self._on_variable_change = on_variable_change
        self._on_end = on_end
        self._on_time_up = on_time_up
        self._clock = clock or MessageClock()

        self._interrogation = InterrogationMachine(
            timers,
            self._effects,
            on_time_up=self._handle_time_up,
            default_seconds=settings.default_interrogation_seconds,
        )
        self._tags = TagInterpreter(
            self._effects,
            timers,
            self._interrogation,
            settings,
            on_tag_observed=on_tag_observed,
        )
        self._scheduler = RevealScheduler(
            timers,
            on_reveal=self._reveal_paragraph,
            on_complete=self._reveal_complete,
        )
        self._bridge = PersistenceBridge(runtime)

        self._frame: StoryFrame | None = None
        self._variables: dict[str, VariableValue] = {}
        self._end_reported = False
        self._closed = False
        self._save_lock = asyncio.Lock()
        self._advance_lock = asyncio.Lock()
        self._save_tasks: set[asyncio.Task] = set()
        self.error: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def frame(self) -> StoryFrame | None:
        return self._frame

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin a fresh play-through from the start of the story."""
        if self._closed:
            return
        logger.info("session start key=%s", self.snapshot_key)
        try:
            frame = await self._runtime.reset()
        except StoryRuntimeError:
            self._fail()
            raise

        self.error = None
        self._interrogation.exit()
        self._tags.reset()
        self._tags.apply(frame.global_tags)
        self._begin(frame, report_variables=False)
        await self._autosave()

    async def resume(self, snapshot: SessionSnapshot | None = None) -> None:
        """Continue from `snapshot`, or from the stored one when omitted.

        Raises SnapshotError when there is nothing to resume from or the
        runtime rejects the saved state.
        """
        if self._closed:
            return
        if snapshot is None:
            snapshot = self._load_snapshot()
        logger.info("session resume key=%s", self.snapshot_key)

        try:
            frame, used_cache = await self._bridge.restore(snapshot)
        except (SnapshotError, StoryRuntimeError):
            self._fail()
            raise

        self.error = None
        if snapshot.presentation is not None:
            self._tags.restore(snapshot.presentation)
        else:
            self._tags.apply(frame.global_tags)
        self._interrogation.restore(snapshot.interrogation)
        if self._interrogation.active:
            self._tags.presentation.mode = "interrogation"
        else:
            self._tags.presentation.mode = "normal"

        if used_cache:
            # Cached paragraphs already had their tags applied before the save.
            self._frame = frame
            self._end_reported = False
            self._diff_variables(frame.variables, report=False)
            self._scheduler.show_all(frame.paragraphs)
            self._check_end()
        else:
            self._begin(frame, report_variables=False)
        await self._autosave()

    def close(self) -> None:
        """Cancel every timer. Later calls on the session do nothing."""
        if self._closed:
            return
        logger.info("session close key=%s", self.snapshot_key)
        self._closed = True
        self._scheduler.cancel()
        self._tags.close()
        self._interrogation.close()

    # ------------------------------------------------------------------
    # Player input
    # ------------------------------------------------------------------

    def tap_to_continue(self) -> bool:
        """Fast-forward the current reveal. Returns False when idle."""
        if self._closed or not self._scheduler.is_revealing:
            return False
        self._effects.haptic("text_reveal")
        return self._scheduler.skip()

    async def choose(self, index: int) -> bool:
        """Pick a choice. While revealing this only fast-forwards.

        Returns True when the choice reached the runtime. A choice made while
        another one is still waiting on the runtime is dropped. Runtime errors
        leave the session in the "could not continue" state and propagate.
        """
        if self._closed:
            return False
        if self._scheduler.is_revealing:
            self._scheduler.skip()
            logger.debug("choice %d ignored while revealing", index)
            return False
        if self._advance_lock.locked():
            logger.debug("choice %d ignored while advancing", index)
            return False

        async with self._advance_lock:
            self._effects.haptic("choice_made")
            logger.info("session choose key=%s index=%d", self.snapshot_key, index)
            try:
                frame = await self._runtime.choose(index)
            except StoryRuntimeError:
                self._fail()
                raise

            if self._closed:
                return True
            self.error = None
            self._begin(frame, report_variables=True)
        await self._autosave()
        return True

    def mark_image_loaded(self) -> None:
        if not self._closed:
            self._tags.mark_image_loaded()

    def timestamp(self) -> str:
        """Next cosmetic message time, e.g. "16:45"."""
        return self._clock.next()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def snapshot(self) -> SessionSnapshot:
        async with self._save_lock:
            return await self._bridge.snapshot(
                self._scheduler.paragraphs,
                self._scheduler.displayed_count,
                self._tags.presentation,
                self._interrogation.state,
            )

    async def save(self) -> SessionSnapshot:
        """Write a snapshot to the store now. Errors propagate."""
        if self._store is None:
            raise SnapshotError("Session has no snapshot store")
        snapshot = await self.snapshot()
        self._bridge.save(self._store, self.snapshot_key, snapshot)
        logger.debug("snapshot saved key=%s paragraphs=%d",
                     self.snapshot_key, len(snapshot.materialized_paragraphs))
        return snapshot

    async def flush(self) -> None:
        """Wait for autosaves started by timer callbacks."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def projection(self) -> Projection:
        presentation = self._tags.presentation
        interrogation = self._interrogation.state
        frame = self._frame
        revealing = self._scheduler.is_revealing

        choices = []
        if frame is not None and not revealing and not frame.is_end and not self._closed:
            choices = [c.model_copy(deep=True) for c in frame.choices]
        choice_view = "interrogation" if any(has_tag(c.tags, "interrogation") for c in choices) else "normal"

        return Projection(
            visible_paragraphs=[
                VisibleParagraph(
                    text=p.text,
                    tags=list(p.tags),
                    variant=classify_paragraph(p.text, p.tags),
                )
                for p in self._scheduler.visible_paragraphs()
            ],
            available_choices=choices,
            choice_view=choice_view,
            is_revealing=revealing,
            skipped=self._scheduler.cursor.skipped,
            mood=presentation.mood,
            chapter=presentation.chapter,
            title=presentation.title,
            scene_image=presentation.scene_image,
            image_position=presentation.image_position,
            image_loaded=presentation.image_loaded,
            mode=presentation.mode,
            vision_active=presentation.vision_active,
            interrogation=interrogation.model_copy(deep=True) if interrogation else None,
            tactical_hint=self._interrogation.tactical_hint,
            variables=dict(self._variables),
            is_end=frame.is_end if frame is not None else False,
            error=self.error,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _begin(self, frame: StoryFrame, report_variables: bool) -> None:
        self._frame = frame
        self._end_reported = False
        self._diff_variables(frame.variables, report=report_variables)
        self._scheduler.begin_frame(frame.paragraphs)

    def _reveal_paragraph(self, index: int, paragraph: Paragraph) -> None:
        if not self._closed:
            self._tags.apply(paragraph.tags)

    def _reveal_complete(self) -> None:
        if self._closed:
            return
        if self._scheduler.paragraphs:
            self._schedule_autosave()
        self._check_end()

    def _check_end(self) -> None:
        frame = self._frame
        if frame is None or not frame.is_end or self._end_reported:
            return
        self._end_reported = True
        logger.info("session end key=%s", self.snapshot_key)
        if self._on_end is not None:
            self._on_end(frame)

    def _diff_variables(self, variables: dict[str, VariableValue], report: bool) -> None:
        previous = self._variables
        self._variables = dict(variables)
        if not report or self._on_variable_change is None:
            return
        for name, value in variables.items():
            old = previous.get(name)
            if name not in previous or old != value:
                self._on_variable_change(name, old, value)

    def _handle_time_up(self) -> None:
        logger.info("interrogation time up key=%s", self.snapshot_key)
        if self._on_time_up is not None and not self._closed:
            self._on_time_up()

    def _fail(self) -> None:
        self.error = ERROR_MESSAGE
        logger.warning("session key=%s could not continue", self.snapshot_key)

    def _load_snapshot(self) -> SessionSnapshot:
        try:
            snapshot = self._bridge.load(self._store, self.snapshot_key) if self._store else None
        except SnapshotError:
            self._fail()
            raise
        if snapshot is None:
            self._fail()
            raise SnapshotError(f"No snapshot stored under {self.snapshot_key!r}")
        return snapshot

    async def _autosave(self) -> None:
        if self._store is None or self._closed:
            return
        try:
            await self.save()
        except SnapshotError as e:
            logger.warning("autosave failed key=%s: %s", self.snapshot_key, e)

    def _schedule_autosave(self) -> None:
        if self._store is None:
            return
        task = asyncio.get_running_loop().create_task(self._autosave())
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)
