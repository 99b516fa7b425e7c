"""Persisting finished sessions without letting storage errors block completion.

A failed write is logged, retried once and then dropped. The caller always gets
the in-memory outcome back; `CommitReport.saved` tells the UI whether to show a
"your progress may not have saved" notice.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from quiz_tutor.errors import PersistenceFailure
from quiz_tutor.history import record_outcome
from quiz_tutor.models import SessionOutcome
from quiz_tutor.results import review_qualities
from quiz_tutor.review import record_review

logger = logging.getLogger(__name__)


@dataclass
class CommitReport:
    outcome: SessionOutcome
    outcome_saved: bool = False
    reviews_updated: int = 0
    failures: list = field(default_factory=list)

    @property
    def saved(self) -> bool:
        return not self.failures


class PersistenceSink:
    def __init__(self, db_path: str, retries: int = 1):
        self.db_path = db_path
        self.retries = retries

    def _attempt(self, what: str, action: Callable[[], object]) -> object:
        """Run a write, retrying on sqlite errors. Raises PersistenceFailure when out of tries."""
        for attempt in range(self.retries + 1):
            try:
                return action()
            except sqlite3.Error as exc:
                if attempt < self.retries:
                    logger.warning("%s failed (%s); retrying", what, exc)
                    continue
                logger.error("%s failed after %d attempts: %s", what, attempt + 1, exc)
                raise PersistenceFailure(f"{what}: {exc}") from exc

    def save_outcome(self, outcome: SessionOutcome) -> int:
        return self._attempt(
            f"saving {outcome.mode} outcome {outcome.session_id}",
            lambda: record_outcome(self.db_path, outcome),
        )

    def update_review(self, question_id: str, quality: int, now: datetime = None):
        return self._attempt(
            f"updating review item {question_id}",
            lambda: record_review(self.db_path, question_id, quality, now),
        )


def commit_session(controller, sink: PersistenceSink, now: datetime = None) -> Optional[CommitReport]:
    """Write a finished session's outcome, then its review updates in answer order.

    Returns None for sessions that are still running or were abandoned:
    nothing is written for those. A session that had no questions gets a
    report but no write; a timed run with zero answers is still saved.
    """
    if not controller.is_finished or controller.abandoned or controller.outcome is None:
        return None
    outcome = controller.outcome
    report = CommitReport(outcome=outcome)
    if controller.error is not None:
        # nothing was played
        return report
    try:
        sink.save_outcome(outcome)
        report.outcome_saved = True
    except PersistenceFailure as exc:
        report.failures.append(exc)
    if controller.config.update_reviews:
        now = now or datetime.now()
        for question_id, quality in review_qualities(outcome):
            try:
                sink.update_review(question_id, quality, now)
                report.reviews_updated += 1
            except PersistenceFailure as exc:
                report.failures.append(exc)
    return report
