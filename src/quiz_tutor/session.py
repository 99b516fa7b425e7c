"""Session controller state machine shared by every quiz mode.

A controller owns the question list, the live QuestionState of the current
question and the SessionResults collected so far. Every transition (answer,
clock tick, termination) is a plain method call on one thread; the controller
reports what happened by publishing SessionEvents on its EventChannel.

Phases run LOADING -> ACTIVE -> (AWAITING_REVIVE | SCORING) -> FINISHED.
FINISHED is a latch: the first termination wins and later ones are ignored.
"""
import logging
import random
import uuid
from dataclasses import replace
from enum import Enum
from typing import Iterable, Optional

from quiz_tutor import events
from quiz_tutor.clock import CountdownClock, CountUpClock
from quiz_tutor.config import SessionConfig
from quiz_tutor.errors import (
    AnswerAlreadyLocked, IndexOutOfRange, NoCurrentQuestion, NoQuestionsAvailable,
)
from quiz_tutor.events import EventChannel
from quiz_tutor.models import Question, QuestionState, SessionOutcome, SessionResult
from quiz_tutor.results import build_outcome

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    AWAITING_REVIVE = "awaiting_revive"
    SCORING = "scoring"
    FINISHED = "finished"


class Mode(str, Enum):
    STANDARD = "standard"
    MOCK_TEST = "mock_test"
    TIME_ATTACK = "time_attack"
    SURVIVAL = "survival"
    SYNTAX_SPRINT = "syntax_sprint"


_CONTROLLERS: dict = {}


class SessionController:
    mode: Mode = None
    commit_on_select = True
    supports_question_timer = False
    default_question_seconds = 0

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.mode is not None:
            _CONTROLLERS[cls.mode] = cls

    def __init__(
        self,
        questions: Iterable[Question],
        config: SessionConfig = None,
        channel: EventChannel = None,
    ):
        self.config = config or SessionConfig()
        self.channel = channel or EventChannel()
        self.rng = random.Random(self.config.seed)
        self.session_id = uuid.uuid4().hex
        self.phase = Phase.LOADING
        self.source = list(questions)
        self.questions = self._prepare(self.source)
        self.position = 0
        self.results: list = []
        self.outcome: Optional[SessionOutcome] = None
        self.error: Optional[Exception] = None
        self.abandoned = False
        self.clock = CountUpClock()
        self.question_timer: Optional[CountdownClock] = None
        self._state: Optional[QuestionState] = None
        if self.supports_question_timer and self.question_seconds > 0:
            self.question_timer = CountdownClock(self.question_seconds)
        self._setup()

        if not self.questions:
            self.error = NoQuestionsAvailable(f"{self.mode.value} session has no questions")
            logger.warning("%s", self.error)
            self._finish("no_questions")
            return
        self._start()

    # -- setup ------------------------------------------------------------

    def _prepare(self, questions: list) -> list:
        prepared = list(questions)
        if self.config.shuffle_questions:
            self.rng.shuffle(prepared)
        if self.config.shuffle_options:
            prepared = [q.shuffled(self.rng) for q in prepared]
        return prepared

    def _setup(self) -> None:
        """Create mode clocks and counters; runs even when there are no questions."""

    def _start(self) -> None:
        self._set_phase(Phase.ACTIVE)
        self._show(0)

    @property
    def question_seconds(self) -> int:
        if self.config.question_seconds is None:
            return self.default_question_seconds
        return self.config.question_seconds

    # -- state access -----------------------------------------------------

    @property
    def current_state(self) -> QuestionState:
        if self._state is None:
            raise NoCurrentQuestion(f"no current question in phase {self.phase.value}")
        return self._state

    @property
    def current_question(self) -> Question:
        return self.current_state.question

    @property
    def has_current_question(self) -> bool:
        return self._state is not None

    @property
    def question_number(self) -> int:
        return min(self.position + 1, len(self.questions))

    @property
    def progress(self) -> float:
        if self.phase is Phase.FINISHED or not self.questions:
            return 1.0
        return self.position / len(self.questions)

    @property
    def is_finished(self) -> bool:
        return self.phase is Phase.FINISHED

    @property
    def elapsed(self) -> int:
        return self.clock.elapsed

    @property
    def score(self) -> int:
        return sum(1 for r in self.results if r.is_correct)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.results if r.is_correct)

    @property
    def incorrect_count(self) -> int:
        return sum(1 for r in self.results if not r.is_correct)

    def metrics(self) -> dict:
        return {}

    # -- transitions ------------------------------------------------------

    def select(self, index: int) -> Optional[bool]:
        """Pick an option for the current question.

        Returns the correctness once the answer locks, None when the selection
        is held open (mock tests) or rejected.
        """
        if self.phase is not Phase.ACTIVE or self._state is None:
            self._reject(index, f"not accepting answers in phase {self.phase.value}")
            return None
        state = self._state
        try:
            correct = state.select(index, commit=self.commit_on_select)
        except (AnswerAlreadyLocked, IndexOutOfRange) as exc:
            self._reject(index, str(exc))
            return None
        if state.locked:
            self._after_lock(state, time_up=False)
        return correct

    def advance(self) -> bool:
        """Record the current question (unanswered if nothing locked) and move on."""
        if self.phase is not Phase.ACTIVE or self._state is None:
            return False
        state = self._state
        if not state.locked:
            state.lock()
        self._record(state)
        self._move_on()
        return True

    def tick(self) -> None:
        """Consume one second of session time."""
        if self.phase is Phase.FINISHED:
            return
        self.clock.tick()
        if (
            self.phase is Phase.ACTIVE
            and self.question_timer is not None
            and self._state is not None
            and not self._state.locked
            and self.question_timer.tick()
        ):
            self._question_time_up()
        if self.phase is not Phase.FINISHED:
            self._on_tick()

    def advance_clock(self, seconds: int) -> None:
        for _ in range(max(0, int(seconds))):
            if self.phase is Phase.FINISHED:
                break
            self.tick()

    def abandon(self) -> bool:
        """Stop without an outcome; nothing from this session is persisted."""
        if self.phase is Phase.FINISHED:
            return False
        self.abandoned = True
        self._state = None
        self._set_phase(Phase.FINISHED)
        self.channel.publish(events.ABANDONED, session_id=self.session_id)
        logger.info("%s session %s abandoned", self.mode.value, self.session_id)
        return True

    # -- follow-up sessions -----------------------------------------------

    def _follow_up_config(self, **changes) -> SessionConfig:
        if self.config.seed is not None:
            changes.setdefault("seed", self.rng.randrange(2 ** 32))
        return replace(self.config, **changes)

    def retry(self, channel: EventChannel = None) -> "SessionController":
        return type(self)(self.source, self._follow_up_config(), channel=channel)

    def next_set(self, questions: Iterable[Question], set_id: str = None,
                 channel: EventChannel = None) -> "SessionController":
        return type(self)(questions, self._follow_up_config(set_id=set_id), channel=channel)

    def review_mistakes(self, channel: EventChannel = None) -> "SessionController":
        """Standard session over the questions answered incorrectly."""
        wrong = set(self.outcome.incorrect_ids) if self.outcome else set()
        questions = [q for q in self.source if q.id in wrong]
        standard = _CONTROLLERS[Mode.STANDARD]
        return standard(questions, self._follow_up_config(), channel=channel)

    # -- hooks for modes ----------------------------------------------------

    def _on_answer(self, state: QuestionState) -> None:
        pass

    def _on_tick(self) -> None:
        pass

    def _total(self) -> int:
        return len(self.questions)

    # -- internals ----------------------------------------------------------

    def _set_phase(self, phase: Phase) -> None:
        if phase is self.phase:
            return
        previous, self.phase = self.phase, phase
        self.channel.publish(events.PHASE_CHANGED, previous=previous.value, phase=phase.value)

    def _show(self, position: int) -> None:
        self.position = position
        question = self.questions[position]
        self._state = QuestionState(question, shown_at=self.clock.elapsed)
        if self.question_timer is not None:
            self.question_timer.reset()
        self.channel.publish(
            events.QUESTION_SHOWN,
            question_id=question.id,
            number=position + 1,
            total=len(self.questions),
        )

    def _move_on(self) -> None:
        following = self.position + 1
        if following < len(self.questions):
            self._show(following)
        else:
            self._state = None
            self._finish("completed")

    def _record(self, state: QuestionState, time_spent: int = None) -> SessionResult:
        if time_spent is None:
            time_spent = self.clock.elapsed - state.shown_at
        result = SessionResult(
            question_id=state.question.id,
            answered=state.answered,
            selected_index=state.selected_index,
            is_correct=bool(state.is_correct),
            time_spent=time_spent,
            category=state.question.category,
        )
        self.results.append(result)
        return result

    def _after_lock(self, state: QuestionState, time_up: bool) -> None:
        self.channel.publish(
            events.ANSWER_LOCKED,
            question_id=state.question.id,
            selected=state.selected_index,
            correct=bool(state.is_correct),
            correct_index=state.question.correct_index,
            time_up=time_up,
            animate=bool(state.is_correct) and self.config.show_animations,
        )
        self._on_answer(state)

    def _question_time_up(self) -> None:
        state = self._state
        state.time_up()
        self.channel.publish(events.TIME_UP, question_id=state.question.id, scope="question")
        self._after_lock(state, time_up=True)

    def _reject(self, index, reason: str) -> None:
        logger.warning("%s session rejected answer %r: %s", self.mode.value, index, reason)
        self.channel.publish(events.ANSWER_REJECTED, index=index, reason=reason)

    def _finish(self, reason: str) -> bool:
        if self.phase is Phase.FINISHED:
            return False
        if self.question_timer is not None:
            self.question_timer.pause()
        self.outcome = build_outcome(
            self.mode.value,
            self.results,
            score=self.score,
            total=self._total(),
            duration=self.clock.elapsed,
            metrics=self.metrics(),
            reason=reason,
            set_id=self.config.set_id,
            session_id=self.session_id,
        )
        self._set_phase(Phase.FINISHED)
        self.channel.publish(events.FINISHED, outcome=self.outcome)
        logger.info(
            "%s session finished (%s): %d/%d",
            self.mode.value, reason, self.outcome.correct, self.outcome.total,
        )
        return True
