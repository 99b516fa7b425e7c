"""Mode-specific session controllers."""
import logging
from typing import Callable, Iterable, Optional

from quiz_tutor import events
from quiz_tutor.clock import CountdownClock, ReplenishableClock
from quiz_tutor.config import SessionConfig
from quiz_tutor.errors import InvalidTransition
from quiz_tutor.events import EventChannel
from quiz_tutor.models import Question, QuestionState
from quiz_tutor.session import _CONTROLLERS, Mode, Phase, SessionController

logger = logging.getLogger(__name__)

TIME_ATTACK_SECONDS = 300
TIME_ATTACK_PENALTY = 5
MOCK_TEST_SECONDS = 900
SURVIVAL_QUESTION_SECONDS = 30
SPRINT_SECONDS = 60
SPRINT_CORRECT_BONUS = 4
SPRINT_INCORRECT_PENALTY = 2
SPRINT_PASS_PENALTY = 5
SPRINT_HINT_PENALTY = 5
# (minimum combo, extra seconds on top of the base bonus), highest tier first
SPRINT_COMBO_TIERS = ((30, 2), (10, 1))


def sprint_time_bonus(combo: int) -> int:
    """Seconds granted for a correct answer that brings the combo to `combo`."""
    for threshold, extra in SPRINT_COMBO_TIERS:
        if combo >= threshold:
            return SPRINT_CORRECT_BONUS + extra
    return SPRINT_CORRECT_BONUS


class StandardSession(SessionController):
    """One point per correct answer; the user advances after each answer."""
    mode = Mode.STANDARD
    supports_question_timer = True


class MockTestSession(SessionController):
    """Exam conditions: answers stay open until the sheet is committed."""
    mode = Mode.MOCK_TEST
    commit_on_select = False

    def _setup(self) -> None:
        seconds = self.config.session_seconds
        if seconds is None:
            seconds = MOCK_TEST_SECONDS
        self.timer = CountdownClock(seconds) if seconds > 0 else None
        self.sheet = [QuestionState(q) for q in self.questions]
        self.marked: set = set()
        self.timed_out = False
        self._time_on = {q.id: 0 for q in self.questions}

    def _show(self, position: int) -> None:
        if self._state is not None:
            self._time_on[self._state.question.id] += self.clock.elapsed - self._state.shown_at
        self.position = position
        self._state = self.sheet[position]
        self._state.shown_at = self.clock.elapsed
        self.channel.publish(
            events.QUESTION_SHOWN,
            question_id=self._state.question.id,
            number=position + 1,
            total=len(self.questions),
        )

    def advance(self) -> bool:
        return self.next_question()

    def next_question(self) -> bool:
        if self.phase is not Phase.ACTIVE:
            return False
        if self.position < len(self.questions) - 1:
            self._show(self.position + 1)
        else:
            self._set_phase(Phase.SCORING)
        return True

    def previous_question(self) -> bool:
        if self.phase is not Phase.ACTIVE or self.position == 0:
            return False
        self._show(self.position - 1)
        return True

    def jump_to(self, index: int) -> bool:
        if self.phase is not Phase.ACTIVE:
            return False
        if not 0 <= index < len(self.questions):
            logger.warning("mock test: no question at index %d", index)
            return False
        self._show(index)
        return True

    def toggle_mark(self) -> bool:
        """Flag the current question for a second look. Returns the new mark state."""
        qid = self.current_question.id
        if qid in self.marked:
            self.marked.discard(qid)
            return False
        self.marked.add(qid)
        return True

    def revisit(self, index: int) -> None:
        """Leave scoring to change an answer; only while time remains."""
        if self.phase is not Phase.SCORING:
            raise InvalidTransition(f"cannot revisit from phase {self.phase.value}")
        if self.timed_out:
            raise InvalidTransition("time is up; the answer sheet can only be committed")
        if not 0 <= index < len(self.questions):
            logger.warning("mock test: no question at index %d", index)
            return
        self._set_phase(Phase.ACTIVE)
        self._show(index)

    def commit(self) -> bool:
        """Lock every answer and freeze the score."""
        if self.phase is Phase.FINISHED:
            return False
        if self.phase is not Phase.SCORING:
            raise InvalidTransition(f"cannot commit from phase {self.phase.value}")
        if self._state is not None:
            self._time_on[self._state.question.id] += self.clock.elapsed - self._state.shown_at
        for state in self.sheet:
            if not state.locked:
                state.lock()
            self._record(state, time_spent=self._time_on[state.question.id])
        self._state = None
        return self._finish("time_up" if self.timed_out else "committed")

    def answer_sheet(self) -> list[dict]:
        return [
            {
                "number": i + 1,
                "question_id": s.question.id,
                "selected_index": s.selected_index,
                "marked": s.question.id in self.marked,
            }
            for i, s in enumerate(self.sheet)
        ]

    @property
    def answered_count(self) -> int:
        return sum(1 for s in self.sheet if s.answered)

    @property
    def remaining_seconds(self) -> Optional[int]:
        return self.timer.remaining if self.timer else None

    def _on_tick(self) -> None:
        if self.phase is Phase.ACTIVE and self.timer is not None and self.timer.tick():
            self.timed_out = True
            self.channel.publish(events.TIME_UP, scope="session")
            self._set_phase(Phase.SCORING)

    def metrics(self) -> dict:
        return {
            "marked": len(self.marked),
            "unanswered": len(self.sheet) - self.answered_count,
            "timed_out": self.timed_out,
        }


class TimeAttackSession(SessionController):
    """Answer as many as possible before the clock runs out; misses cost time."""
    mode = Mode.TIME_ATTACK

    def _setup(self) -> None:
        seconds = self.config.session_seconds
        self.timer = CountdownClock(TIME_ATTACK_SECONDS if seconds is None else seconds)
        penalty = self.config.incorrect_penalty
        self.penalty = TIME_ATTACK_PENALTY if penalty is None else penalty
        self.mistake_limit = self.config.mistake_limit
        self.mistakes = 0

    def advance(self) -> bool:
        # answers advance on their own
        return False

    @property
    def attempted_count(self) -> int:
        return len(self.results)

    @property
    def remaining_seconds(self) -> int:
        return self.timer.remaining

    def _on_answer(self, state: QuestionState) -> None:
        self._record(state)
        if not state.is_correct:
            self.mistakes += 1
            expired = self.timer.deduct(self.penalty)
            self.channel.publish(
                events.TIME_CHANGED, delta=-self.penalty, remaining=self.timer.remaining,
            )
            if self.mistake_limit and self.mistakes >= self.mistake_limit:
                self._state = None
                self._finish("mistake_limit")
                return
            if expired:
                self._state = None
                self._finish("time_up")
                return
        self._move_on()

    def _on_tick(self) -> None:
        if self.phase is Phase.ACTIVE and self.timer.tick():
            # the unanswered question on screen was never attempted
            self._state = None
            self.channel.publish(events.TIME_UP, scope="session")
            self._finish("time_up")

    def _total(self) -> int:
        return len(self.results)

    def metrics(self) -> dict:
        answered = len(self.results)
        spent = sum(r.time_spent for r in self.results)
        return {
            "mistakes": self.mistakes,
            "mistake_limit": self.mistake_limit,
            "remaining_seconds": self.timer.remaining,
            "pool_size": len(self.questions),
            "average_answer_seconds": round(spent / answered, 1) if answered else 0.0,
        }


ReviveGate = Callable[["SurvivalSession"], bool]


class SurvivalSession(SessionController):
    """One life and one revive; the score is the longest correct streak."""
    mode = Mode.SURVIVAL
    supports_question_timer = True
    default_question_seconds = SURVIVAL_QUESTION_SECONDS

    def __init__(
        self,
        questions: Iterable[Question],
        config: SessionConfig = None,
        channel: EventChannel = None,
        revive_gate: ReviveGate = None,
    ):
        self.revive_gate = revive_gate
        super().__init__(questions, config, channel)

    def _setup(self) -> None:
        self.streak = 0
        self.best_streak = 0
        self.revive_used = False

    @property
    def score(self) -> int:
        return self.best_streak

    def retry(self, channel: EventChannel = None) -> "SurvivalSession":
        return SurvivalSession(
            self.source, self._follow_up_config(), channel=channel, revive_gate=self.revive_gate,
        )

    def _on_answer(self, state: QuestionState) -> None:
        self._record(state)
        if state.is_correct:
            self.streak += 1
            self.best_streak = max(self.best_streak, self.streak)
            self._move_on()
            return
        self._state = None
        if self.revive_used:
            self._finish("out_of_lives")
            return
        self._set_phase(Phase.AWAITING_REVIVE)
        self.channel.publish(events.REVIVE_REQUESTED, score=self.score)
        if self.revive_gate is not None:
            self._ask_gate()

    def _ask_gate(self) -> None:
        try:
            granted = bool(self.revive_gate(self))
        except Exception:
            logger.exception("revive gate failed; treating it as declined")
            granted = False
        if self.phase is not Phase.AWAITING_REVIVE:
            return
        if granted:
            self.grant_revive()
        else:
            self.decline_revive()

    def grant_revive(self) -> None:
        if self.phase is not Phase.AWAITING_REVIVE:
            raise InvalidTransition(f"no revive pending in phase {self.phase.value}")
        self.revive_used = True
        self._set_phase(Phase.ACTIVE)
        self._move_on()

    def decline_revive(self) -> None:
        if self.phase is not Phase.AWAITING_REVIVE:
            raise InvalidTransition(f"no revive pending in phase {self.phase.value}")
        self._finish("revive_declined")

    def advance(self) -> bool:
        return False

    def _total(self) -> int:
        return len(self.results)

    def metrics(self) -> dict:
        return {
            "best_streak": self.best_streak,
            "revive_used": self.revive_used,
            "pool_size": len(self.questions),
        }


class SyntaxSprintSession(SessionController):
    """Race a refillable clock: correct answers buy time, misses and passes cost it."""
    mode = Mode.SYNTAX_SPRINT

    def _setup(self) -> None:
        seconds = self.config.session_seconds
        self.timer = ReplenishableClock(SPRINT_SECONDS if seconds is None else seconds)
        penalty = self.config.incorrect_penalty
        self.penalty = SPRINT_INCORRECT_PENALTY if penalty is None else penalty
        self.combo = 0
        self.max_combo = 0
        self.passes = 0
        self.hints = 0
        self.reviewing = False
        self._eliminated: set = set()

    @property
    def remaining_seconds(self) -> int:
        return self.timer.remaining

    def _show(self, position: int) -> None:
        self._eliminated = set()
        super()._show(position)

    def _on_answer(self, state: QuestionState) -> None:
        self._record(state)
        if state.is_correct:
            self.combo += 1
            self.max_combo = max(self.max_combo, self.combo)
            bonus = sprint_time_bonus(self.combo)
            self.timer.credit(bonus)
            self.channel.publish(
                events.TIME_CHANGED, delta=bonus, remaining=self.timer.remaining, combo=self.combo,
            )
            self._pause_for_review()
            return
        self.combo = 0
        if self._charge(self.penalty):
            return
        self._move_on()

    def advance(self) -> bool:
        """Dismiss the explanation shown after a correct answer or a pass."""
        if self.phase is not Phase.ACTIVE or not self.reviewing:
            return False
        self.reviewing = False
        self.timer.resume()
        self._move_on()
        return True

    def pass_question(self) -> bool:
        if self.phase is not Phase.ACTIVE or self.reviewing or self._state is None:
            return False
        state = self._state
        state.lock()
        self._record(state)
        self.passes += 1
        self.combo = 0
        self.channel.publish(events.ANSWER_LOCKED, question_id=state.question.id, selected=None,
                             correct=False, correct_index=state.question.correct_index,
                             time_up=False, animate=False, passed=True)
        if self._charge(SPRINT_PASS_PENALTY):
            return True
        self._pause_for_review()
        return True

    def hint(self, kind: str = "eliminate"):
        """Spend time for help on the current question.

        "eliminate" returns the index of a wrong option not yet eliminated,
        "explanation" returns the explanation text. Returns None when no hint
        is available; nothing is charged then.
        """
        if self.phase is not Phase.ACTIVE or self.reviewing or self._state is None:
            return None
        question = self._state.question
        if kind == "eliminate":
            wrong = [i for i in range(len(question.options))
                     if i != question.correct_index and i not in self._eliminated]
            if not wrong:
                return None
            value = self.rng.choice(wrong)
            self._eliminated.add(value)
        elif kind == "explanation":
            if not question.explanation:
                return None
            value = question.explanation
        else:
            raise ValueError(f"unknown hint kind: {kind}")
        self.hints += 1
        self._charge(SPRINT_HINT_PENALTY)
        return value

    def _charge(self, seconds: int) -> bool:
        """Deduct time; finishes the session and returns True if it ran out."""
        expired = self.timer.deduct(seconds)
        self.channel.publish(events.TIME_CHANGED, delta=-seconds, remaining=self.timer.remaining,
                             combo=self.combo)
        if expired:
            self._state = None
            self.reviewing = False
            self._finish("time_up")
        return expired

    def _pause_for_review(self) -> None:
        self.reviewing = True
        self.timer.pause()

    def _on_tick(self) -> None:
        if self.phase is Phase.ACTIVE and self.timer.tick():
            self._state = None
            self.channel.publish(events.TIME_UP, scope="session")
            self._finish("time_up")

    def _total(self) -> int:
        return len(self.results)

    def metrics(self) -> dict:
        return {
            "max_combo": self.max_combo,
            "passes": self.passes,
            "hints": self.hints,
            "remaining_seconds": self.timer.remaining,
            "pool_size": len(self.questions),
        }


def create_session(mode, questions: Iterable[Question], config: SessionConfig = None,
                   channel: EventChannel = None, **kwargs) -> SessionController:
    """Build the controller for a mode ("standard", Mode.SURVIVAL, ...)."""
    cls = _CONTROLLERS[Mode(mode)]
    return cls(questions, config, channel, **kwargs)
