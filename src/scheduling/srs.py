"""Spaced-repetition scheduling helpers for answered items.

The update rule is a simplified SM-2: quality ratings run from 0 (blackout)
to 5 (instant recall); a multiple-choice answer maps correct to 4 and
incorrect to 2.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from src.scheduling.models import ItemProgress, MasteryStatus
from src.scheduling.slots import round_half_up


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
CORRECT_QUALITY = 4
INCORRECT_QUALITY = 2
DEFAULT_CONFIDENCE = 3
MAX_CONFIDENCE_HISTORY = 10
MASTERED_INTERVAL_DAYS = 21
REVIEW_INTERVAL_DAYS = 7
MASTERED_ACCURACY = 0.8
# Interval thresholds that each add a tier to the mastery score.
_MASTERY_TIERS = (1, 3, 7, 21)


@dataclass(slots=True)
class ReviewSchedule:
    """Calculated review data for an item after receiving a quality rating."""

    next_review: datetime
    ease: float
    interval: int
    repetitions: int
    status: MasteryStatus


def start_of_day(moment: datetime) -> datetime:
    """Truncate a timestamp to midnight, keeping its timezone."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def derive_status(
    interval: int,
    *,
    correct_count: Optional[int] = None,
    attempts: Optional[int] = None,
    repetitions: Optional[int] = None,
) -> MasteryStatus:
    """Return the mastery status for whichever progress inputs are known.

    Attempt counts are authoritative: when ``attempts`` is given the answer
    history decides, and ``repetitions`` is ignored. The repetition form is
    only a fallback for callers that hold nothing but a fresh SM-2 result.
    """
    if attempts is not None:
        if attempts == 0:
            return MasteryStatus.NEW
        accuracy = (correct_count or 0) / attempts
        if interval >= MASTERED_INTERVAL_DAYS and accuracy > MASTERED_ACCURACY:
            return MasteryStatus.MASTERED
        if interval >= REVIEW_INTERVAL_DAYS:
            return MasteryStatus.REVIEW
        return MasteryStatus.LEARNING

    if not repetitions and interval <= 1:
        return MasteryStatus.LEARNING
    if interval >= MASTERED_INTERVAL_DAYS:
        return MasteryStatus.MASTERED
    if interval >= REVIEW_INTERVAL_DAYS:
        return MasteryStatus.REVIEW
    return MasteryStatus.LEARNING


def schedule(
    *,
    quality: int,
    repetitions: int,
    easiness: float,
    interval: int,
    correct_count: Optional[int] = None,
    attempts: Optional[int] = None,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Return the next review schedule using the SM-2 update rule."""
    if now is None:
        now = datetime.now(timezone.utc)

    quality = max(0, min(5, quality))
    repetitions = max(0, repetitions or 0)
    interval = max(0, interval or 0)

    if quality >= 3:
        if repetitions == 0:
            new_interval = 1
        elif repetitions == 1:
            new_interval = 6
        else:
            new_interval = round_half_up(interval * easiness)
        new_ease = easiness + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
        if new_ease < MIN_EASE_FACTOR:
            new_ease = MIN_EASE_FACTOR
        new_repetitions = repetitions + 1
    else:
        new_repetitions = 0
        new_interval = 1
        new_ease = easiness

    return ReviewSchedule(
        next_review=start_of_day(now + timedelta(days=new_interval)),
        ease=new_ease,
        interval=new_interval,
        repetitions=new_repetitions,
        status=derive_status(
            new_interval,
            correct_count=correct_count,
            attempts=attempts,
            repetitions=new_repetitions,
        ),
    )


def estimate_repetitions(interval: int) -> int:
    """Guess the consecutive-success count from a persisted interval."""
    if interval >= 6:
        return 2
    if interval >= 1:
        return 1
    return 0


def _confidence_adjustment(confidence: int, is_correct: bool) -> Tuple[float, float]:
    """Return ``(ease_delta, interval_multiplier)`` for a confidence rating."""
    offset = confidence - DEFAULT_CONFIDENCE
    if is_correct:
        if offset >= 1:
            return offset * 0.02, 1 + offset * 0.05
        if offset <= -1:
            # Likely a lucky guess.
            return offset * 0.02, 1 + offset * 0.15
    elif offset >= 1:
        # Overconfident miss.
        return -offset * 0.05, 1.0
    return 0.0, 1.0


def process_answer(
    is_correct: bool,
    prior: Optional[ItemProgress] = None,
    *,
    confidence: int = DEFAULT_CONFIDENCE,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Schedule an item after a multiple-choice answer."""
    if now is None:
        now = datetime.now(timezone.utc)

    confidence = max(1, min(5, round_half_up(confidence)))
    prior_interval = prior.interval if prior is not None else 0
    prior_attempts = prior.attempts if prior is not None else 0
    prior_correct = prior.correct_count if prior is not None else 0

    result = schedule(
        quality=CORRECT_QUALITY if is_correct else INCORRECT_QUALITY,
        repetitions=estimate_repetitions(prior_interval) if prior is not None else 0,
        easiness=prior.ease if prior is not None else DEFAULT_EASE_FACTOR,
        interval=prior_interval,
        correct_count=prior_correct + (1 if is_correct else 0),
        attempts=prior_attempts + 1,
        now=now,
    )

    ease_delta, interval_multiplier = _confidence_adjustment(confidence, is_correct)
    if ease_delta == 0 and interval_multiplier == 1:
        return result

    interval = max(1, round_half_up(result.interval * interval_multiplier))
    return ReviewSchedule(
        next_review=start_of_day(now + timedelta(days=interval)),
        ease=max(MIN_EASE_FACTOR, result.ease + ease_delta),
        interval=interval,
        repetitions=result.repetitions,
        status=derive_status(
            interval,
            correct_count=prior_correct + (1 if is_correct else 0),
            attempts=prior_attempts + 1,
        ),
    )


def calculate_mastery_score(correct_count: int, attempts: int, interval: int) -> float:
    """Blend accuracy with interval growth into a 0-100 score."""
    if attempts <= 0:
        return 0.0
    tier = sum(1 for threshold in _MASTERY_TIERS if interval >= threshold)
    return float(round_half_up((correct_count / attempts) * 60 + tier * 10))


def update_confidence_history(history: Optional[Iterable[int]], confidence: int) -> List[int]:
    """Append a rating and keep only the most recent ones."""
    updated = list(history or [])
    updated.append(confidence)
    return updated[-MAX_CONFIDENCE_HISTORY:]


def average_confidence(history: Optional[Iterable[int]]) -> Optional[float]:
    ratings = list(history or [])
    if not ratings:
        return None
    return sum(ratings) / len(ratings)


def initial_progress(item_id: str, now: datetime | None = None) -> ItemProgress:
    """Return the implicit state of an item that has never been answered."""
    if now is None:
        now = datetime.now(timezone.utc)
    return ItemProgress(
        item_id=item_id,
        attempts=0,
        correct_count=0,
        last_attempt=None,
        next_review=now,
        ease=DEFAULT_EASE_FACTOR,
        interval=0,
        status=MasteryStatus.NEW,
    )


def apply_answer(
    prior: Optional[ItemProgress],
    item_id: str,
    is_correct: bool,
    *,
    confidence: int = DEFAULT_CONFIDENCE,
    now: datetime | None = None,
) -> ItemProgress:
    """Return the item state that follows a single answer."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = process_answer(is_correct, prior, confidence=confidence, now=now)
    attempts = (prior.attempts if prior is not None else 0) + 1
    correct_count = (prior.correct_count if prior is not None else 0) + (1 if is_correct else 0)
    history = prior.confidence_history if prior is not None else None

    return ItemProgress(
        item_id=item_id,
        attempts=attempts,
        correct_count=correct_count,
        last_attempt=now,
        next_review=result.next_review,
        ease=result.ease,
        interval=result.interval,
        status=result.status,
        mastery_score=calculate_mastery_score(correct_count, attempts, result.interval),
        confidence_history=update_confidence_history(history, confidence),
    )


def is_due(next_review: datetime, now: datetime | None = None) -> bool:
    if now is None:
        now = datetime.now(timezone.utc)
    return next_review <= now


def calculate_priority(next_review: datetime, interval: int, now: datetime | None = None) -> float:
    """Rank review urgency: days overdue relative to the item's interval.

    Items not yet due get a negative score (days remaining).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    days_overdue = (now - next_review) / timedelta(days=1)
    if days_overdue <= 0:
        return days_overdue
    return days_overdue / max(interval, 1)
