"""Data classes for questions, answer state, session results and review items."""
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from quiz_tutor.errors import AnswerAlreadyLocked, IndexOutOfRange, InvalidQuestion


@dataclass(frozen=True)
class Question:
    id: str
    prompt: str
    options: tuple
    correct_index: int
    explanation: str = ""
    category: Optional[str] = None
    difficulty: Optional[int] = None
    skill_tags: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "skill_tags", tuple(self.skill_tags))
        if not self.id:
            raise InvalidQuestion("question id must not be empty")
        if len(self.options) < 2:
            raise InvalidQuestion(f"{self.id}: needs at least two options")
        if not 0 <= self.correct_index < len(self.options):
            raise InvalidQuestion(
                f"{self.id}: correct index {self.correct_index} outside {len(self.options)} options"
            )

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]

    def shuffled(self, rng: random.Random = None) -> "Question":
        """Copy with the options permuted and the correct index following its option."""
        rng = rng or random
        order = list(range(len(self.options)))
        rng.shuffle(order)
        return Question(
            id=self.id,
            prompt=self.prompt,
            options=tuple(self.options[i] for i in order),
            correct_index=order.index(self.correct_index),
            explanation=self.explanation,
            category=self.category,
            difficulty=self.difficulty,
            skill_tags=self.skill_tags,
        )


@dataclass
class QuestionState:
    question: Question
    selected_index: Optional[int] = None
    locked: bool = False
    is_correct: Optional[bool] = None
    shown_at: int = 0

    def select(self, index: int, commit: bool = True) -> Optional[bool]:
        if self.locked:
            raise AnswerAlreadyLocked(self.question.id)
        if not 0 <= index < len(self.question.options):
            raise IndexOutOfRange(index, len(self.question.options))
        self.selected_index = index
        if commit:
            return self.lock()
        return None

    def lock(self) -> bool:
        if self.locked:
            raise AnswerAlreadyLocked(self.question.id)
        self.is_correct = (
            self.selected_index is not None
            and self.selected_index == self.question.correct_index
        )
        self.locked = True
        return self.is_correct

    def time_up(self) -> bool:
        """Force submission of whatever is selected. Returns correctness."""
        if not self.locked:
            self.lock()
        return bool(self.is_correct)

    @property
    def answered(self) -> bool:
        return self.selected_index is not None


@dataclass(frozen=True)
class SessionResult:
    question_id: str
    answered: bool
    selected_index: Optional[int]
    is_correct: bool
    time_spent: int = 0
    category: Optional[str] = None


@dataclass(frozen=True)
class SessionOutcome:
    mode: str
    score: int
    correct: int
    attempted: int
    total: int
    duration: int
    incorrect_ids: tuple = ()
    results: tuple = ()
    metrics: dict = field(default_factory=dict)
    reason: str = "completed"
    set_id: Optional[str] = None
    session_id: str = ""
    finished_at: Optional[datetime] = None

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total


@dataclass
class ReviewItem:
    question_id: str
    last_reviewed: datetime
    next_review: datetime
    repetition: int = 0
    ease_factor: float = 2.5
    last_interval: float = 0.0  # seconds

    def is_due(self, now: datetime) -> bool:
        return self.next_review <= now


def new_review_item(question_id: str, now: datetime) -> ReviewItem:
    return ReviewItem(question_id=question_id, last_reviewed=now, next_review=now)
