"""Category weighting based on recent performance and study recency."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from src.scheduling.models import CategoryProgress, CategoryWeight, SessionMode, WeightReason


LOGGER = logging.getLogger(__name__)

MAX_CATEGORY_SHARE = 0.4
WEAK_ACCURACY = 0.5
STRONG_ACCURACY = 0.85
STRONG_DAMPING = 0.7
EXPLORATION_BONUS = 1.5
RECENCY_RATE_PER_DAY = 0.1
RECENCY_MAX_BOOST = 2.0
RUSTY_AFTER_DAYS = 7
COLD_START_ATTEMPTS = 10


class _HasSubelement(Protocol):
    subelement: str


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _days_since(moment: datetime, now: datetime) -> float:
    return (now - _as_aware(moment)) / timedelta(days=1)


def _adaptive_weight(category: CategoryProgress, now: datetime) -> Tuple[float, WeightReason]:
    reason: Optional[WeightReason] = None

    if category.recent_attempts > 0:
        weight = 0.5 + (1 - category.recent_accuracy)
        if category.recent_accuracy < WEAK_ACCURACY:
            reason = WeightReason.WEAK
        elif category.recent_accuracy > STRONG_ACCURACY:
            reason = WeightReason.STRONG
            weight *= STRONG_DAMPING
    else:
        weight = EXPLORATION_BONUS
        reason = WeightReason.EXPLORE

    if category.last_studied is not None:
        days_since = _days_since(category.last_studied, now)
        weight *= min(1 + days_since * RECENCY_RATE_PER_DAY, RECENCY_MAX_BOOST)
        if days_since > RUSTY_AFTER_DAYS and reason is None:
            reason = WeightReason.RUSTY

    return weight, reason or WeightReason.NORMAL


def calculate_category_weights(
    categories: Sequence[CategoryProgress],
    mode: SessionMode = SessionMode.ADAPTIVE,
    *,
    now: datetime | None = None,
) -> List[CategoryWeight]:
    """Turn category aggregates into normalized weights, heaviest first."""
    if not categories:
        return []
    if now is None:
        now = datetime.now(timezone.utc)

    mode = SessionMode(mode)
    weight_cap = MAX_CATEGORY_SHARE * len(categories)
    weights: List[CategoryWeight] = []
    for category in categories:
        if mode is SessionMode.ADAPTIVE:
            weight, reason = _adaptive_weight(category, now)
        elif mode is SessionMode.REVIEW:
            weight = 1.0 if category.recent_attempts > 0 else 0.5
            reason = WeightReason.NORMAL
        elif mode is SessionMode.EXPLORE:
            unseen = category.recent_attempts == 0
            weight = 2.0 if unseen else 0.5
            reason = WeightReason.EXPLORE if unseen else WeightReason.NORMAL
        else:
            weight, reason = 1.0, WeightReason.NORMAL
        # Applied before normalizing, in every mode.
        weights.append(CategoryWeight(category.category_id, min(weight, weight_cap), reason))

    total = sum(w.weight for w in weights)
    if total > 0:
        for entry in weights:
            entry.weight /= total

    weights.sort(key=lambda w: w.weight, reverse=True)
    LOGGER.debug(
        "Computed %d category weights in %s mode: %s",
        len(weights),
        mode.value,
        ", ".join(f"{w.category_id}={w.weight:.3f}/{w.reason.value}" for w in weights),
    )
    return weights


def default_category_progress(items: Iterable[_HasSubelement]) -> List[CategoryProgress]:
    """Zero-attempt aggregates for every subelement present in ``items``."""
    seen: List[str] = []
    for item in items:
        if item.subelement not in seen:
            seen.append(item.subelement)
    return [CategoryProgress(category_id=subelement) for subelement in seen]


def recommend_mode(
    categories: Sequence[CategoryProgress],
    last_session: Optional[datetime],
    *,
    now: datetime | None = None,
) -> Tuple[SessionMode, str]:
    """Suggest a session mode and a short explanation for the learner."""
    if not categories:
        return SessionMode.EXPLORE, "Start by exploring new concepts"

    if sum(c.total_attempts for c in categories) < COLD_START_ATTEMPTS:
        return SessionMode.EXPLORE, "Continue building your foundation"

    if now is None:
        now = datetime.now(timezone.utc)
    if last_session is not None:
        days_since = _days_since(last_session, now)
        if days_since > RUSTY_AFTER_DAYS:
            return SessionMode.REVIEW, f"{int(days_since)} days since last session, time to review!"

    weak = [c for c in categories if c.weakness_score > 0.5]
    if weak:
        suffix = "s" if len(weak) > 1 else ""
        return SessionMode.ADAPTIVE, f"Focus on {len(weak)} weak area{suffix}"

    average_accuracy = sum(c.recent_accuracy for c in categories) / len(categories)
    if average_accuracy > STRONG_ACCURACY:
        return SessionMode.EXPLORE, "Great progress! Discover new content"

    return SessionMode.ADAPTIVE, "Balanced study based on your performance"
