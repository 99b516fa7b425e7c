# tests/test_results.py
from quiz_tutor.models import SessionResult
from quiz_tutor.results import (
    BACK_TO_HOME, EXCELLENT, GOOD, GREAT, NEEDS_REVIEW, NEXT_SET, PERFECT, REVIEW_MISTAKES,
    TRY_AGAIN, build_outcome, category_breakdown, evaluation_tier, incorrect_ids,
    review_qualities, suggest_actions, summarize, tier_label,
)


def _r(qid, correct, answered=True, time_spent=3, category=None):
    return SessionResult(qid, answered, 0 if answered else None, correct, time_spent, category)


def test_evaluation_tier_boundaries():
    assert evaluation_tier(1.0) == PERFECT
    assert evaluation_tier(0.9) == EXCELLENT
    assert evaluation_tier(0.7) == GREAT
    assert evaluation_tier(0.5) == GOOD
    assert evaluation_tier(0.49) == NEEDS_REVIEW
    assert tier_label(PERFECT) == "PERFECT!"


def test_incorrect_ids_keeps_order_without_repeats():
    results = [_r("A", False), _r("B", True), _r("C", False, answered=False), _r("A", False)]
    assert incorrect_ids(results) == ["A", "C"]


def test_build_outcome_counts():
    results = [_r("A", True), _r("B", False), _r("C", False, answered=False)]
    outcome = build_outcome("standard", results, duration=12, set_id="S1")
    assert outcome.correct == 1
    assert outcome.attempted == 2
    assert outcome.total == 3
    assert outcome.score == 1
    assert outcome.incorrect_ids == ("B", "C")
    assert outcome.session_id
    assert outcome.finished_at is not None


def test_suggest_actions_high_score_with_next_set():
    outcome = build_outcome("standard", [_r("A", True)] * 9 + [_r("B", False)])
    kinds = [a.kind for a in suggest_actions(outcome, has_next_set=True)]
    assert kinds == [NEXT_SET, REVIEW_MISTAKES, TRY_AGAIN, BACK_TO_HOME]
    assert suggest_actions(outcome, has_next_set=True)[0].primary


def test_suggest_actions_low_score():
    outcome = build_outcome("standard", [_r("A", True), _r("B", False)])
    kinds = [a.kind for a in suggest_actions(outcome, has_next_set=True)]
    assert kinds == [TRY_AGAIN, REVIEW_MISTAKES, NEXT_SET, BACK_TO_HOME]


def test_suggest_actions_perfect_without_next_set():
    outcome = build_outcome("standard", [_r("A", True)])
    kinds = [a.kind for a in suggest_actions(outcome)]
    assert kinds == [TRY_AGAIN, BACK_TO_HOME]


def test_category_breakdown():
    results = [_r("A", False, category="x"), _r("B", False, category="x"), _r("C", False), _r("D", True, category="y")]
    assert category_breakdown(results) == {"x": 2, "uncategorized": 1}


def test_review_qualities_last_answer_wins():
    results = [_r("A", False), _r("B", True, time_spent=2), _r("A", True, time_spent=30)]
    outcome = build_outcome("time_attack", results)
    assert review_qualities(outcome) == [("B", 5), ("A", 3)]


def test_summarize_reports_items(questions):
    results = [
        SessionResult("Q1", True, 0, True, 2, "cat-a"),
        SessionResult("Q2", True, 1, False, 4, "cat-b"),
    ]
    outcome = build_outcome("standard", results)
    summary = summarize(outcome, questions)
    assert summary["accuracy"] == 50.0
    assert summary["tier"] == GOOD
    assert summary["items"][1]["selected"] == "wrong a"
    assert summary["items"][1]["correct_answer"] == "right"
    assert summary["by_category"] == {"cat-b": 1}
