# tests/test_survival.py
import logging

import pytest

from conftest import fixed_config, make_questions
from quiz_tutor import events
from quiz_tutor.errors import InvalidTransition
from quiz_tutor.events import EventChannel
from quiz_tutor.modes import SURVIVAL_QUESTION_SECONDS, SurvivalSession
from quiz_tutor.session import Phase


def test_streak_grows_on_correct_answers(questions):
    session = SurvivalSession(questions, fixed_config())
    session.select(0)
    session.select(0)
    assert session.streak == 2
    assert session.score == 2
    assert session.current_question.id == "Q3"


def test_miss_waits_for_revive(questions):
    channel = EventChannel()
    session = SurvivalSession(questions, fixed_config(), channel=channel)
    session.select(0)
    assert session.select(1) is False
    assert session.phase is Phase.AWAITING_REVIVE
    assert not session.has_current_question
    assert events.REVIVE_REQUESTED in [e.kind for e in channel.drain()]
    assert session.select(0) is None


def test_revive_keeps_streak_and_second_miss_ends():
    session = SurvivalSession(make_questions(6), fixed_config())
    session.select(0)
    session.select(0)
    session.select(1)
    session.grant_revive()
    assert session.phase is Phase.ACTIVE
    assert session.current_question.id == "Q4"
    session.select(0)
    assert session.streak == 3
    session.select(1)
    assert session.is_finished
    outcome = session.outcome
    assert outcome.reason == "out_of_lives"
    assert outcome.score == 3
    assert outcome.total == 5
    assert outcome.correct == 3
    assert outcome.metrics["revive_used"] is True


def test_decline_revive_finishes(questions):
    session = SurvivalSession(questions, fixed_config())
    session.select(1)
    session.decline_revive()
    assert session.outcome.reason == "revive_declined"
    assert session.outcome.score == 0


def test_revive_calls_require_pending_revive(questions):
    session = SurvivalSession(questions, fixed_config())
    with pytest.raises(InvalidTransition):
        session.grant_revive()
    with pytest.raises(InvalidTransition):
        session.decline_revive()


def test_revive_gate_grants(questions):
    asked = []

    def gate(s):
        asked.append(s.score)
        return True

    session = SurvivalSession(questions, fixed_config(), revive_gate=gate)
    session.select(0)
    session.select(1)
    assert asked == [1]
    assert session.phase is Phase.ACTIVE
    assert session.revive_used


def test_failing_gate_counts_as_declined(questions, caplog):
    def gate(s):
        raise RuntimeError("ad failed to load")

    session = SurvivalSession(questions, fixed_config(), revive_gate=gate)
    with caplog.at_level(logging.ERROR, logger="quiz_tutor.modes"):
        session.select(1)
    assert session.outcome.reason == "revive_declined"
    assert "ad failed to load" in caplog.text


def test_question_timer_counts_as_a_miss(questions):
    session = SurvivalSession(questions, fixed_config())
    session.advance_clock(SURVIVAL_QUESTION_SECONDS)
    assert session.phase is Phase.AWAITING_REVIVE
    assert session.results[0].answered is False


def test_retry_keeps_gate(questions):
    gate = lambda s: False  # noqa: E731
    session = SurvivalSession(questions, fixed_config(), revive_gate=gate)
    session.select(1)
    again = session.retry()
    assert isinstance(again, SurvivalSession)
    assert again.revive_gate is gate
    assert again.best_streak == 0


def test_clearing_the_pool_completes(questions):
    session = SurvivalSession(questions, fixed_config())
    for _ in questions:
        session.select(0)
    assert session.outcome.reason == "completed"
    assert session.outcome.score == 5
    assert session.outcome.accuracy == 1.0
