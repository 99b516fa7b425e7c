import pytest

from quiz_tutor.config import SessionConfig
from quiz_tutor.models import Question


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


def make_questions(count=5, prefix="Q", correct_index=0):
    return [
        Question(
            id=f"{prefix}{i}",
            prompt=f"Question {i}?",
            options=("right", "wrong a", "wrong b", "wrong c"),
            correct_index=correct_index,
            explanation=f"Because of rule {i}.",
            category="cat-a" if i % 2 else "cat-b",
            difficulty=1 + i % 3,
            skill_tags=("grammar",),
        )
        for i in range(1, count + 1)
    ]


def fixed_config(**changes):
    """Deterministic config: no shuffling, no per-question timer."""
    values = dict(shuffle_questions=False, shuffle_options=False, seed=7)
    values.update(changes)
    return SessionConfig(**values)


@pytest.fixture
def questions():
    return make_questions()
