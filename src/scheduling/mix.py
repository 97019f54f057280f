"""Decide how a practice batch splits between due, new and review items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Sequence, Set, TypeVar

from src.scheduling.models import ItemProgress, MasteryStatus
from src.scheduling.slots import round_half_up
from src.scheduling.srs import is_due


T = TypeVar("T")


@dataclass(slots=True)
class ProgressStats:
    """Counts and accuracy over one item pool."""

    total: int
    new: int
    accuracy: float
    due_count: int
    learning: int = 0
    review: int = 0
    mastered: int = 0


@dataclass(slots=True)
class PracticeMix:
    due: int
    new: int
    review: int

    @property
    def total(self) -> int:
        return self.due + self.new + self.review


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def plan_practice_mix(stats: ProgressStats, count: int) -> PracticeMix:
    """Split ``count`` items into due, new and extra-review sub-counts."""
    count = max(0, count)

    if stats.total == stats.new:
        # Nothing has been answered yet, so there is nothing to review.
        due = min(max(0, stats.due_count), count)
        return PracticeMix(due=due, new=count - due, review=0)

    new_ratio = stats.new / stats.total if stats.total > 0 else 1.0
    if stats.accuracy < 0.65:
        reinforcement = 0.2
    elif stats.accuracy < 0.75:
        reinforcement = 0.1
    else:
        reinforcement = 0.0

    due_pressure = _clamp(stats.due_count / max(stats.total, 1), 0.0, 1.0)
    due_target = _clamp(0.2 + due_pressure * 0.4 + reinforcement, 0.2, 0.75)
    new_target = _clamp(0.25 + new_ratio * 0.4 - reinforcement * 0.5, 0.15, 0.7)

    due = round_half_up(count * due_target)
    remainder = count - due
    new = round_half_up(remainder * new_target)
    return PracticeMix(due=due, new=new, review=remainder - new)


def compute_progress_stats(
    pool_ids: Iterable[str],
    progress: Mapping[str, ItemProgress],
    *,
    now: datetime | None = None,
) -> ProgressStats:
    """Aggregate per-status counts for the items of one pool.

    Pool items without a record count as new.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    ids = list(dict.fromkeys(pool_ids))
    counts = {status: 0 for status in MasteryStatus}
    total_attempts = 0
    total_correct = 0
    due_count = 0
    seen = 0

    for item_id in ids:
        record = progress.get(item_id)
        if record is None:
            continue
        seen += 1
        counts[MasteryStatus(record.status)] += 1
        total_attempts += record.attempts
        total_correct += record.correct_count
        next_review = record.next_review
        if next_review.tzinfo is None:
            next_review = next_review.replace(tzinfo=timezone.utc)
        if is_due(next_review, now):
            due_count += 1

    return ProgressStats(
        total=len(ids),
        new=len(ids) - seen,
        accuracy=total_correct / total_attempts if total_attempts > 0 else 0.0,
        due_count=due_count,
        learning=counts[MasteryStatus.LEARNING],
        review=counts[MasteryStatus.REVIEW],
        mastered=counts[MasteryStatus.MASTERED],
    )


def assemble_practice_batch(
    plan: PracticeMix,
    due: Sequence[T],
    new: Sequence[T],
    review: Sequence[T],
    count: int,
    *,
    key=lambda item: item,
) -> List[T]:
    """Fill each bucket to its planned size, then back-fill any shortfall.

    Back-fill draws from due, new and review in that order and never
    repeats an item.
    """
    batch: List[T] = []
    taken: Set[object] = set()

    def take(source: Sequence[T], limit: int) -> None:
        for item in source:
            if len(batch) >= count or limit <= 0:
                return
            marker = key(item)
            if marker in taken:
                continue
            batch.append(item)
            taken.add(marker)
            limit -= 1

    take(due, plan.due)
    take(new, plan.new)
    take(review, plan.review)
    for source in (due, new, review):
        take(source, count - len(batch))
    return batch
