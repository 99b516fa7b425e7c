"""Review item storage, due-item queries and weak area identification."""
import logging
from datetime import datetime, time

from quiz_tutor.db import get_connection
from quiz_tutor.models import ReviewItem, new_review_item
from quiz_tutor.sm2 import clamp_quality, sm2_update

logger = logging.getLogger(__name__)


def _row_to_item(row) -> ReviewItem:
    return ReviewItem(
        question_id=row["question_id"],
        last_reviewed=datetime.fromisoformat(row["last_reviewed"]),
        next_review=datetime.fromisoformat(row["next_review"]),
        repetition=row["repetition"],
        ease_factor=row["ease_factor"],
        last_interval=row["last_interval"],
    )


def get_review_item(db_path: str, question_id: str) -> ReviewItem | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM review_items WHERE question_id = ?", (question_id,)
    ).fetchone()
    conn.close()
    return _row_to_item(row) if row else None


def record_review(db_path: str, question_id: str, quality: int, now: datetime = None) -> ReviewItem:
    """Apply one SM-2 update as an atomic read-modify-write on the item's row."""
    now = now or datetime.now()
    if clamp_quality(quality) != quality:
        logger.warning("quality %r for %s clamped into 0..5", quality, question_id)
        quality = clamp_quality(quality)
    conn = get_connection(db_path)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        row = conn.execute(
            "SELECT * FROM review_items WHERE question_id = ?", (question_id,)
        ).fetchone()
        item = _row_to_item(row) if row else new_review_item(question_id, now)
        updated = sm2_update(item, quality, now)
        conn.execute(
            """INSERT INTO review_items
            (question_id, last_reviewed, next_review, repetition, ease_factor, last_interval)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(question_id) DO UPDATE SET
                last_reviewed=excluded.last_reviewed, next_review=excluded.next_review,
                repetition=excluded.repetition, ease_factor=excluded.ease_factor,
                last_interval=excluded.last_interval""",
            (
                updated.question_id, updated.last_reviewed.isoformat(),
                updated.next_review.isoformat(), updated.repetition,
                updated.ease_factor, updated.last_interval,
            ),
        )
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()
    logger.debug(
        "review item %s: repetition=%d ease=%.2f next=%s",
        question_id, updated.repetition, updated.ease_factor, updated.next_review.isoformat(),
    )
    return updated


def review_item_exists(db_path: str, question_id: str) -> bool:
    conn = get_connection(db_path)
    count = conn.execute(
        "SELECT COUNT(*) FROM review_items WHERE question_id = ?", (question_id,)
    ).fetchone()[0]
    conn.close()
    return count > 0


def delete_review_item(db_path: str, question_id: str) -> bool:
    """Remove a question from review. Returns False if it was not scheduled."""
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM review_items WHERE question_id = ?", (question_id,))
    conn.commit()
    conn.close()
    return cur.rowcount > 0


def get_all_review_items(db_path: str) -> list[ReviewItem]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM review_items ORDER BY next_review ASC").fetchall()
    conn.close()
    return [_row_to_item(r) for r in rows]


def get_due_items(db_path: str, now: datetime = None, limit: int = 20) -> list[ReviewItem]:
    """Items whose next review is at or before `now`, most overdue first."""
    now = now or datetime.now()
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM review_items WHERE next_review <= ? ORDER BY next_review ASC LIMIT ?",
        (now.isoformat(), limit),
    ).fetchall()
    conn.close()
    return [_row_to_item(r) for r in rows]


def count_due_today(db_path: str, now: datetime = None) -> int:
    """Items due by the end of today."""
    now = now or datetime.now()
    end_of_day = datetime.combine(now.date(), time.max)
    conn = get_connection(db_path)
    count = conn.execute(
        "SELECT COUNT(*) FROM review_items WHERE next_review <= ?", (end_of_day.isoformat(),)
    ).fetchone()[0]
    conn.close()
    return count


def get_weak_categories(db_path: str, threshold: float = 70.0) -> list[dict]:
    """Categories whose answer accuracy is below threshold (worst first)."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT COALESCE(category, 'uncategorized') as category,
            COUNT(*) as total,
            SUM(is_correct) as correct
        FROM session_results
        GROUP BY COALESCE(category, 'uncategorized')
        HAVING (CAST(correct AS REAL) / total) * 100 < ?
        ORDER BY (CAST(correct AS REAL) / total) ASC""",
        (threshold,),
    ).fetchall()
    conn.close()
    return [
        {
            "category": r["category"],
            "total": r["total"],
            "correct": r["correct"],
            "score": round((r["correct"] / r["total"]) * 100, 1),
        }
        for r in rows
    ]
