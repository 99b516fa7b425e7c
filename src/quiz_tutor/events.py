"""Transition events published by session controllers."""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

QUESTION_SHOWN = "question_shown"
ANSWER_LOCKED = "answer_locked"
ANSWER_REJECTED = "answer_rejected"
TIME_UP = "time_up"
TIME_CHANGED = "time_changed"
PHASE_CHANGED = "phase_changed"
REVIVE_REQUESTED = "revive_requested"
FINISHED = "finished"
ABANDONED = "abandoned"


@dataclass(frozen=True)
class SessionEvent:
    kind: str
    payload: dict = field(default_factory=dict)


class EventChannel:
    """Ordered event queue with optional push subscribers.

    Events are kept until drained so a UI can poll; subscribers are called
    synchronously as each event is published. A failing subscriber is logged
    and never interrupts the session.
    """

    def __init__(self) -> None:
        self._queue = deque()
        self._subs: list = []

    def subscribe(self, handler: Callable[[SessionEvent], None], kind: str = None) -> None:
        self._subs.append((kind, handler))

    def publish(self, kind: str, **payload) -> SessionEvent:
        event = SessionEvent(kind, payload)
        self._queue.append(event)
        for wanted, handler in self._subs:
            if wanted is not None and wanted != kind:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("event handler failed for %s", kind)
        return event

    def drain(self) -> list:
        events = list(self._queue)
        self._queue.clear()
        return events

    def __len__(self) -> int:
        return len(self._queue)
