"""Tests for story_player.interrogation."""

import pytest

from story_player.effects import QueuedEffects
from story_player.interrogation import (
    InterrogationMachine,
    apply_interrogation_tags,
    create_interrogation_state,
    derive_suspect_mood,
    parse_time_budget,
    tactical_hint,
)
from tests.helpers import ManualTimers


class _Env:
    def __init__(self) -> None:
        self.timers = ManualTimers()
        self.effects = QueuedEffects()
        self.time_up = 0
        self.machine = InterrogationMachine(self.timers, self.effects, on_time_up=self._time_up)

    def _time_up(self) -> None:
        self.time_up += 1


@pytest.fixture
def env() -> _Env:
    return _Env()


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

class TestEnter:
    def test_defaults(self, env: _Env) -> None:
        state = env.machine.enter(["mode:interrogation"])
        assert state.subject_id == "unknown"
        assert state.subject_name == "unknown"
        assert state.time_budget_seconds == 300
        assert state.max_time_seconds == 300
        assert state.pressure == 0
        assert state.rapport == 0
        assert state.suspect_mood == "nervous"
        assert state.tactical_hint == tactical_hint(0, 300)

    def test_entry_tags(self, env: _Env) -> None:
        state = env.machine.enter(["suspect:orlov", "suspect_name:Pavel Orlov", "timer:90"])
        assert state.subject_id == "orlov"
        assert state.subject_name == "Pavel Orlov"
        assert state.time_budget_seconds == 90

    def test_name_defaults_to_subject_id(self, env: _Env) -> None:
        assert env.machine.enter(["suspect:orlov"]).subject_name == "orlov"

    @pytest.mark.parametrize("value", ["abc", "0", "-5", ""])
    def test_bad_timer_falls_back(self, env: _Env, value: str) -> None:
        assert env.machine.enter([f"timer:{value}"]).time_budget_seconds == 300

    def test_parse_time_budget(self) -> None:
        assert parse_time_budget("45") == 45
        assert parse_time_budget(True) == 300
        assert parse_time_budget(None, default=60) == 60


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

class TestUpdate:
    def test_pressure_and_rapport_clamped(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["pressure:+150", "rapport:-20"])
        assert env.machine.state.pressure == 100
        assert env.machine.state.rapport == 0

    def test_malformed_delta_ignored(self, env: _Env) -> None:
        env.machine.enter([])
        assert env.machine.update(["pressure:lots"]) is False
        assert env.machine.state.pressure == 0

    def test_question_counter(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["question_asked"])
        env.machine.update(["question_asked"])
        assert env.machine.state.questions_asked == 2

    def test_clue_deduplicated(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["clue_revealed:ticket"])
        env.machine.update(["clue_revealed:ticket"])
        assert env.machine.state.clues_revealed == ["ticket"]
        assert env.effects.haptics() == ["clue_discovered"]

    def test_confession_once(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["confession:obtained"])
        env.machine.update(["confession:true"])
        assert env.machine.state.confession_obtained is True
        assert env.effects.haptics() == ["case_solved"]

    def test_explicit_mood(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["suspect_mood:silent"])
        assert env.machine.state.suspect_mood == "silent"

    def test_hint_recomputed(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.update(["pressure:+90"])
        assert env.machine.tactical_hint == tactical_hint(90, 300)

    def test_update_inactive(self, env: _Env) -> None:
        assert env.machine.update(["pressure:+10"]) is False
        assert env.machine.tactical_hint == ""

    def test_apply_returns_copy(self) -> None:
        state = create_interrogation_state("a", "A")
        updated = apply_interrogation_tags(state, ["pressure:+10"], QueuedEffects())
        assert state.pressure == 0
        assert updated.pressure == 10

    def test_non_vocabulary_tags_ignored(self) -> None:
        state = create_interrogation_state("a", "A")
        updated = apply_interrogation_tags(state, ["mood:dark", "clue"], QueuedEffects())
        assert updated == state


class TestDerivedMood:
    @pytest.mark.parametrize("pressure, rapport, expected", [
        (85, 10, "broken"),
        (65, 10, "aggressive"),
        (10, 75, "cooperative"),
        (40, 55, "relaxed"),
        (55, 40, "defensive"),
        (20, 20, "nervous"),
    ])
    def test_rules(self, pressure: int, rapport: int, expected: str) -> None:
        assert derive_suspect_mood(pressure, rapport, "nervous") == expected


class TestTacticalHint:
    def test_pure(self) -> None:
        assert tactical_hint(50, 120) == tactical_hint(50, 120)

    def test_branches_differ(self) -> None:
        hints = {
            tactical_hint(50, 0),
            tactical_hint(90, 200),
            tactical_hint(70, 30),
            tactical_hint(70, 200),
            tactical_hint(40, 30),
            tactical_hint(10, 200),
            tactical_hint(40, 200),
        }
        assert len(hints) == 7

    def test_time_up(self) -> None:
        assert "Time is up" in tactical_hint(90, 0)


# ---------------------------------------------------------------------------
# Countdown
# ---------------------------------------------------------------------------

class TestCountdown:
    def test_ticks_once_per_second(self, env: _Env) -> None:
        env.machine.enter(["timer:100"])
        env.timers.advance(999)
        assert env.machine.state.time_budget_seconds == 100
        env.timers.advance(1)
        assert env.machine.state.time_budget_seconds == 99
        env.timers.advance(5000)
        assert env.machine.state.time_budget_seconds == 94

    def test_warning_at_thirty(self, env: _Env) -> None:
        env.machine.enter(["timer:32"])
        env.timers.advance(1000)
        assert env.effects.haptics() == []
        env.timers.advance(1000)
        assert env.effects.haptics() == ["timer_warning"]
        env.timers.advance(1000)
        assert env.effects.haptics() == ["timer_warning"]

    def test_no_warning_when_starting_below_thirty(self, env: _Env) -> None:
        env.machine.enter(["timer:20"])
        env.timers.advance(25_000)
        assert "timer_warning" not in env.effects.haptics()

    def test_time_up_once(self, env: _Env) -> None:
        env.machine.enter(["timer:3"])
        env.timers.advance(10_000)
        assert env.machine.state.time_budget_seconds == 0
        assert env.time_up == 1
        assert env.effects.haptics() == ["game_over"]
        assert env.timers.pending == []
        assert env.machine.active is True

    def test_hint_follows_clock(self, env: _Env) -> None:
        env.machine.enter(["timer:61"])
        before = env.machine.tactical_hint
        env.timers.advance(2000)
        assert env.machine.tactical_hint == tactical_hint(0, 59)
        assert env.machine.tactical_hint != before

    def test_exit_cancels(self, env: _Env) -> None:
        env.machine.enter(["timer:10"])
        env.machine.exit()
        assert env.machine.state is None
        assert env.timers.pending == []
        env.timers.advance(20_000)
        assert env.time_up == 0

    def test_restore_resumes_countdown(self, env: _Env) -> None:
        saved = create_interrogation_state("a", "A", 50)
        saved.time_budget_seconds = 5
        env.machine.restore(saved)
        env.timers.advance(5000)
        assert env.time_up == 1

    def test_restore_expired_does_not_tick(self, env: _Env) -> None:
        saved = create_interrogation_state("a", "A", 50)
        saved.time_budget_seconds = 0
        env.machine.restore(saved)
        assert env.timers.pending == []

    def test_restore_none(self, env: _Env) -> None:
        env.machine.enter([])
        env.machine.restore(None)
        assert env.machine.active is False
        assert env.timers.pending == []
