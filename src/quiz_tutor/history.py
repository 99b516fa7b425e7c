"""Append-only history of finished sessions."""
import json
from datetime import datetime

from quiz_tutor.db import get_connection
from quiz_tutor.models import SessionOutcome


def record_outcome(db_path: str, outcome: SessionOutcome) -> int:
    """Insert an outcome and its per-question rows in one transaction. Returns the row id."""
    conn = get_connection(db_path)
    try:
        with conn:
            cur = conn.execute(
                """INSERT INTO session_outcomes
                (session_id, mode, set_id, score, correct, attempted, total, duration,
                 incorrect_ids, metrics, reason, finished_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    outcome.session_id, outcome.mode, outcome.set_id, outcome.score,
                    outcome.correct, outcome.attempted, outcome.total, outcome.duration,
                    json.dumps(list(outcome.incorrect_ids)), json.dumps(outcome.metrics),
                    outcome.reason,
                    (outcome.finished_at or datetime.now()).isoformat(),
                ),
            )
            outcome_id = cur.lastrowid
            conn.executemany(
                """INSERT INTO session_results
                (outcome_id, position, question_id, answered, selected_index, is_correct,
                 time_spent, category)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (outcome_id, i, r.question_id, int(r.answered), r.selected_index,
                     int(r.is_correct), r.time_spent, r.category)
                    for i, r in enumerate(outcome.results)
                ],
            )
    finally:
        conn.close()
    return outcome_id


def _row_to_dict(row) -> dict:
    d = dict(row)
    d["incorrect_ids"] = json.loads(d["incorrect_ids"])
    d["metrics"] = json.loads(d["metrics"])
    return d


def get_outcomes(db_path: str, mode: str = None, limit: int = 20) -> list[dict]:
    """Most recent outcomes first."""
    conn = get_connection(db_path)
    if mode:
        rows = conn.execute(
            "SELECT * FROM session_outcomes WHERE mode = ? ORDER BY id DESC LIMIT ?",
            (mode, limit),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM session_outcomes ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
    conn.close()
    return [_row_to_dict(r) for r in rows]


def get_session_results(db_path: str, outcome_id: int) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM session_results WHERE outcome_id = ? ORDER BY position", (outcome_id,)
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_best_score(db_path: str, mode: str, set_id: str = None) -> int:
    """Highest score recorded for a mode (optionally one question set). 0 if none."""
    conn = get_connection(db_path)
    if set_id is None:
        row = conn.execute(
            "SELECT MAX(score) as best FROM session_outcomes WHERE mode = ?", (mode,)
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT MAX(score) as best FROM session_outcomes WHERE mode = ? AND set_id = ?",
            (mode, set_id),
        ).fetchone()
    conn.close()
    return row["best"] or 0


def get_accuracy_by_mode(db_path: str) -> dict:
    """Overall accuracy percentage per mode."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT mode, SUM(correct) as correct, SUM(total) as total, COUNT(*) as sessions
        FROM session_outcomes GROUP BY mode"""
    ).fetchall()
    conn.close()
    return {
        row["mode"]: {
            "sessions": row["sessions"],
            "accuracy": round((row["correct"] / row["total"]) * 100, 1) if row["total"] else 0.0,
        }
        for row in rows
    }


def get_total_study_seconds(db_path: str) -> int:
    conn = get_connection(db_path)
    total = conn.execute("SELECT COALESCE(SUM(duration), 0) FROM session_outcomes").fetchone()[0]
    conn.close()
    return total
