"""SM-2 spaced repetition algorithm."""
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from quiz_tutor.models import ReviewItem, SessionResult

DAY = 24 * 60 * 60
MIN_EASE = 1.3
DEFAULT_EASE = 2.5

FAST_SECONDS = 5
SLOW_SECONDS = 20


def clamp_quality(quality: int) -> int:
    return max(0, min(5, int(quality)))


def sm2_update(item: ReviewItem, quality: int, now: datetime) -> ReviewItem:
    """Return the review item rescheduled after a recall of the given quality.

    Args:
        item: Current scheduling state (use new_review_item for a first review)
        quality: Rating 0-5 (0=complete blackout, 5=perfect); clamped into range
        now: Review time

    Returns:
        A new ReviewItem; the input is left untouched.
    """
    quality = clamp_quality(quality)
    repetition = item.repetition
    ease = item.ease_factor

    if quality >= 3:
        # Correct response
        repetition += 1
        ease = ease + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
        ease = max(MIN_EASE, ease)
        if repetition == 1:
            interval = 1 * DAY
        elif repetition == 2:
            interval = 6 * DAY
        else:
            interval = max(DAY, item.last_interval * ease)
    else:
        # Incorrect: reset the streak, keep the ease
        repetition = 0
        interval = 1 * DAY

    return replace(
        item,
        last_reviewed=now,
        next_review=now + timedelta(seconds=interval),
        repetition=repetition,
        ease_factor=ease,
        last_interval=float(interval),
    )


def quality_for_result(
    result: SessionResult,
    fast_seconds: Optional[int] = FAST_SECONDS,
    slow_seconds: Optional[int] = SLOW_SECONDS,
) -> int:
    """Map a session answer to an SM-2 quality rating."""
    if not result.answered:
        return 0
    if not result.is_correct:
        return 1
    if slow_seconds is not None and result.time_spent >= slow_seconds:
        return 3
    if fast_seconds is not None and result.time_spent <= fast_seconds:
        return 5
    return 4
