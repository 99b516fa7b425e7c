"""Session outcome aggregation, evaluation tiers and follow-up suggestions."""
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from quiz_tutor.models import SessionOutcome, SessionResult
from quiz_tutor.sm2 import quality_for_result

PERFECT = "perfect"
EXCELLENT = "excellent"
GREAT = "great"
GOOD = "good"
NEEDS_REVIEW = "needs_review"

TRY_AGAIN = "try_again"
REVIEW_MISTAKES = "review_mistakes"
NEXT_SET = "next_set"
BACK_TO_HOME = "back_to_home"


@dataclass(frozen=True)
class ResultAction:
    kind: str
    primary: bool = False


def evaluation_tier(accuracy: float) -> str:
    if accuracy >= 1.0:
        return PERFECT
    elif accuracy >= 0.9:
        return EXCELLENT
    elif accuracy >= 0.7:
        return GREAT
    elif accuracy >= 0.5:
        return GOOD
    return NEEDS_REVIEW


def tier_label(tier: str) -> str:
    return {
        PERFECT: "PERFECT!",
        EXCELLENT: "EXCELLENT",
        GREAT: "GREAT",
        GOOD: "GOOD",
        NEEDS_REVIEW: "NICE TRY",
    }[tier]


def tier_color(tier: str) -> str:
    return {
        PERFECT: "magenta",
        EXCELLENT: "red",
        GREAT: "dark_orange",
        GOOD: "green",
        NEEDS_REVIEW: "blue",
    }[tier]


def incorrect_ids(results: Iterable[SessionResult]) -> list[str]:
    """Ids of incorrect (or unanswered) results in answer order, without repeats."""
    seen = []
    for r in results:
        if not r.is_correct and r.question_id not in seen:
            seen.append(r.question_id)
    return seen


def build_outcome(
    mode: str,
    results: list,
    *,
    score: int = None,
    total: int = None,
    duration: int = 0,
    metrics: dict = None,
    reason: str = "completed",
    set_id: str = None,
    session_id: str = None,
    finished_at: datetime = None,
) -> SessionOutcome:
    correct = sum(1 for r in results if r.is_correct)
    attempted = sum(1 for r in results if r.answered)
    return SessionOutcome(
        mode=mode,
        score=correct if score is None else score,
        correct=correct,
        attempted=attempted,
        total=len(results) if total is None else total,
        duration=duration,
        incorrect_ids=tuple(incorrect_ids(results)),
        results=tuple(results),
        metrics=dict(metrics or {}),
        reason=reason,
        set_id=set_id,
        session_id=session_id or uuid.uuid4().hex,
        finished_at=finished_at or datetime.now(),
    )


def suggest_actions(outcome: SessionOutcome, has_next_set: bool = False) -> list[ResultAction]:
    """Ordered follow-up actions; the first one is the primary button."""
    if outcome.accuracy >= 0.9 and has_next_set:
        actions = [ResultAction(NEXT_SET, primary=True), ResultAction(TRY_AGAIN)]
    else:
        actions = [ResultAction(TRY_AGAIN, primary=True)]
        if has_next_set:
            actions.append(ResultAction(NEXT_SET))
    if outcome.incorrect_ids:
        actions.insert(1, ResultAction(REVIEW_MISTAKES))
    actions.append(ResultAction(BACK_TO_HOME))
    return actions


def category_breakdown(results: Iterable[SessionResult]) -> dict:
    """Incorrect answers per category, most missed first."""
    counts = Counter(r.category or "uncategorized" for r in results if not r.is_correct)
    return dict(counts.most_common())


def review_qualities(outcome: SessionOutcome) -> list[tuple[str, int]]:
    """SM-2 quality per question in answer order; a repeated question keeps its last answer."""
    latest = {}
    for r in outcome.results:
        latest.pop(r.question_id, None)
        latest[r.question_id] = quality_for_result(r)
    return list(latest.items())


def summarize(outcome: SessionOutcome, questions: Iterable = (), has_next_set: bool = False) -> dict:
    """Review-ready summary of a finished session.

    Pass the questions as presented (controller.questions): selected indices
    refer to the shuffled option order.
    """
    by_id = {q.id: q for q in questions}
    tier = evaluation_tier(outcome.accuracy)
    items = []
    for r in outcome.results:
        q = by_id.get(r.question_id)
        items.append({
            "question_id": r.question_id,
            "prompt": q.prompt if q else None,
            "selected_index": r.selected_index,
            "selected": q.options[r.selected_index] if q and r.selected_index is not None else None,
            "correct_answer": q.correct_option if q else None,
            "is_correct": r.is_correct,
            "answered": r.answered,
            "time_spent": r.time_spent,
        })
    return {
        "mode": outcome.mode,
        "score": outcome.score,
        "correct": outcome.correct,
        "attempted": outcome.attempted,
        "total": outcome.total,
        "accuracy": round(outcome.accuracy * 100, 1),
        "tier": tier,
        "label": tier_label(tier),
        "duration": outcome.duration,
        "reason": outcome.reason,
        "metrics": dict(outcome.metrics),
        "incorrect_ids": list(outcome.incorrect_ids),
        "by_category": category_breakdown(outcome.results),
        "items": items,
        "actions": [a.kind for a in suggest_actions(outcome, has_next_set)],
    }
