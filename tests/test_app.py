import json
from unittest.mock import patch

import pytest

from conftest import fixed_config, make_questions
from quiz_tutor.app import (
    SessionExitRequested, Ticker, cmd_import, load_bank, play_survival, run_session,
    session_int_prompt, session_prompt,
)
from quiz_tutor.config import get_setting
from quiz_tutor.content import QuestionBank
from quiz_tutor.db import init_db
from quiz_tutor.history import get_outcomes
from quiz_tutor.modes import StandardSession, SurvivalSession


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


def test_session_prompt_raises_on_q():
    with patch("quiz_tutor.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("quiz_tutor.app.Prompt.ask", return_value="menu"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("quiz_tutor.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_session_int_prompt_returns_normal_input():
    with patch("quiz_tutor.app.Prompt.ask", return_value="3"):
        assert session_int_prompt("pick", choices=["1", "2", "3"]) == 3


def test_ticker_feeds_whole_seconds():
    session = StandardSession(make_questions(2), fixed_config())
    with patch("quiz_tutor.app.time.monotonic", side_effect=[100.0, 102.5, 103.2]):
        ticker = Ticker(session)
        ticker.sync()
        assert session.elapsed == 2
        ticker.sync()
    assert session.elapsed == 3


def test_run_standard_session_saves_outcome(tmp_db):
    init_db(tmp_db)
    session = StandardSession(make_questions(2), fixed_config())
    # Q1 right, Enter, Q2 wrong, Enter, then leave the results screen
    with patch("quiz_tutor.app.Prompt.ask", side_effect=["1", "", "2", "", "back_to_home"]):
        run_session(tmp_db, session)
    assert session.outcome.correct == 1
    outcomes = get_outcomes(tmp_db)
    assert len(outcomes) == 1
    assert outcomes[0]["incorrect_ids"] == ["Q2"]


def test_run_session_try_again(tmp_db):
    init_db(tmp_db)
    session = StandardSession(make_questions(1), fixed_config())
    with patch("quiz_tutor.app.Prompt.ask",
               side_effect=["1", "", "try_again", "1", "", "back_to_home"]):
        run_session(tmp_db, session)
    assert len(get_outcomes(tmp_db)) == 2


def test_quitting_mid_session_saves_nothing(tmp_db):
    init_db(tmp_db)
    session = StandardSession(make_questions(3), fixed_config())
    with patch("quiz_tutor.app.Prompt.ask", side_effect=["1", "", "q"]):
        run_session(tmp_db, session)
    assert session.abandoned
    assert get_outcomes(tmp_db) == []


def test_survival_declined_revive(tmp_db):
    init_db(tmp_db)
    session = SurvivalSession(make_questions(3), fixed_config())
    with patch("quiz_tutor.app.Prompt.ask", side_effect=["1", "2", "back_to_home"]), \
            patch("quiz_tutor.app.Confirm.ask", return_value=False):
        run_session(tmp_db, session)
    assert session.outcome.reason == "revive_declined"
    assert get_outcomes(tmp_db)[0]["score"] == 1


def test_revive_prompt_time_is_not_charged_to_next_question():
    session = SurvivalSession(make_questions(2), fixed_config())
    now = [100.0]

    def slow_revive(*args, **kwargs):
        now[0] += 45
        return True

    # Q1 wrong, revive after 45s of thinking, Q2 answered straight away
    with patch("quiz_tutor.app.time.monotonic", side_effect=lambda: now[0]), \
            patch("quiz_tutor.app.Prompt.ask", side_effect=["2", "1"]), \
            patch("quiz_tutor.app.Confirm.ask", side_effect=slow_revive):
        play_survival(session)
    assert session.outcome.reason == "completed"
    second = session.results[1]
    assert second.question_id == "Q2"
    assert second.answered
    assert second.is_correct
    assert second.time_spent == 0


def test_play_loop_drains_session_events(tmp_db):
    init_db(tmp_db)
    session = StandardSession(make_questions(1), fixed_config())
    with patch("quiz_tutor.app.Prompt.ask", side_effect=["1", "", "back_to_home"]):
        run_session(tmp_db, session)
    assert session.outcome.correct == 1
    assert len(session.channel) == 0


def test_run_session_with_no_questions(tmp_db):
    init_db(tmp_db)
    with patch("quiz_tutor.app.Prompt.ask") as mock_ask:
        run_session(tmp_db, StandardSession([], fixed_config()))
    mock_ask.assert_not_called()
    assert get_outcomes(tmp_db) == []


def test_import_registers_file(tmp_db, tmp_path):
    init_db(tmp_db)
    path = tmp_path / "extra.json"
    path.write_text(json.dumps({"sets": [{
        "set_id": "EXTRA",
        "questions": [{"id": "E1", "prompt": "p", "options": ["a", "b"], "correct_index": 0}],
    }]}), encoding="utf-8")
    bank = QuestionBank()
    with patch("quiz_tutor.app.Prompt.ask", return_value=str(path)):
        cmd_import(tmp_db, bank)
    assert bank.get("E1") is not None
    assert json.loads(get_setting(tmp_db, "content_paths")) == [str(path.resolve())]
    reloaded = load_bank(tmp_db)
    assert reloaded.get("E1") is not None
    assert reloaded.get_set("GRAMMAR_SET_1") is not None


def test_load_bank_skips_missing_files(tmp_db, tmp_path, caplog):
    init_db(tmp_db)
    from quiz_tutor.config import set_setting
    set_setting(tmp_db, "content_paths", json.dumps([str(tmp_path / "gone.json")]))
    bank = load_bank(tmp_db)
    assert len(bank) > 0
    assert "gone.json" in caplog.text
