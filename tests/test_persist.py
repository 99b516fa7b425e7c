# tests/test_persist.py
import sqlite3
from datetime import datetime
from unittest.mock import patch

import pytest

from conftest import fixed_config
from quiz_tutor.db import init_db
from quiz_tutor.errors import PersistenceFailure
from quiz_tutor.history import get_outcomes
from quiz_tutor.modes import StandardSession, TimeAttackSession
from quiz_tutor.persist import PersistenceSink, commit_session
from quiz_tutor.review import get_all_review_items, get_review_item

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _finished(questions, answers=None):
    session = StandardSession(questions, fixed_config())
    for answer in answers or [0] * len(questions):
        session.select(answer)
        session.advance()
    return session


def test_commit_saves_outcome_and_reviews(tmp_db, questions):
    init_db(tmp_db)
    session = _finished(questions, [0, 1, 0, 0, 0])
    report = commit_session(session, PersistenceSink(tmp_db), now=NOW)
    assert report.saved
    assert report.outcome_saved
    assert report.reviews_updated == 5
    assert get_outcomes(tmp_db)[0]["session_id"] == session.session_id
    assert get_review_item(tmp_db, "Q2").repetition == 0
    assert get_review_item(tmp_db, "Q1").repetition == 1


def test_unfinished_or_abandoned_sessions_are_not_saved(tmp_db, questions):
    init_db(tmp_db)
    session = StandardSession(questions, fixed_config())
    sink = PersistenceSink(tmp_db)
    assert commit_session(session, sink) is None
    session.abandon()
    assert commit_session(session, sink) is None
    assert get_outcomes(tmp_db) == []


def test_empty_session_writes_nothing(tmp_db):
    init_db(tmp_db)
    session = StandardSession([], fixed_config())
    report = commit_session(session, PersistenceSink(tmp_db))
    assert report.saved
    assert report.outcome_saved is False
    assert get_outcomes(tmp_db) == []


def test_time_attack_timed_out_before_any_answer_is_saved(tmp_db, questions):
    init_db(tmp_db)
    session = TimeAttackSession(questions, fixed_config())
    session.advance_clock(300)
    report = commit_session(session, PersistenceSink(tmp_db))
    assert report.outcome.reason == "time_up"
    assert report.outcome.total == 0
    assert report.outcome_saved
    assert report.reviews_updated == 0
    rows = get_outcomes(tmp_db)
    assert len(rows) == 1
    assert rows[0]["reason"] == "time_up"
    assert rows[0]["total"] == 0


def test_review_updates_can_be_switched_off(tmp_db, questions):
    init_db(tmp_db)
    session = StandardSession(questions, fixed_config(update_reviews=False))
    for _ in questions:
        session.select(0)
        session.advance()
    report = commit_session(session, PersistenceSink(tmp_db))
    assert report.reviews_updated == 0
    assert get_all_review_items(tmp_db) == []


def test_write_is_retried_once(tmp_db, questions):
    init_db(tmp_db)
    session = _finished(questions)
    with patch("quiz_tutor.persist.record_outcome",
               side_effect=[sqlite3.OperationalError("database is locked"), 1]) as mock_record:
        report = commit_session(session, PersistenceSink(tmp_db), now=NOW)
    assert mock_record.call_count == 2
    assert report.saved


def test_failed_outcome_write_is_reported(tmp_db, questions, caplog):
    init_db(tmp_db)
    session = _finished(questions)
    with patch("quiz_tutor.persist.record_outcome",
               side_effect=sqlite3.OperationalError("disk I/O error")):
        report = commit_session(session, PersistenceSink(tmp_db), now=NOW)
    assert not report.saved
    assert report.outcome_saved is False
    assert isinstance(report.failures[0], PersistenceFailure)
    assert report.outcome is session.outcome
    # review updates still go through
    assert report.reviews_updated == 5
    assert "disk I/O error" in caplog.text


def test_failed_review_writes_are_reported(tmp_db, questions):
    init_db(tmp_db)
    session = _finished(questions)
    with patch("quiz_tutor.persist.record_review",
               side_effect=sqlite3.OperationalError("database is locked")):
        report = commit_session(session, PersistenceSink(tmp_db), now=NOW)
    assert report.outcome_saved
    assert report.reviews_updated == 0
    assert len(report.failures) == 5


def test_sink_gives_up_after_retries(tmp_db):
    sink = PersistenceSink(tmp_db, retries=2)
    calls = []

    def always_fails():
        calls.append(1)
        raise sqlite3.OperationalError("nope")

    with pytest.raises(PersistenceFailure):
        sink._attempt("test write", always_fails)
    assert len(calls) == 3
