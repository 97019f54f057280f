"""Fill category slot budgets with the most urgent candidate items."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Mapping, Sequence, Set, Tuple, TypeVar

from src.scheduling.models import ItemProgress, StudyItem


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ItemT = TypeVar("ItemT", bound=StudyItem)


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def matches_category(item: StudyItem, category_id: str) -> bool:
    """Either the coarse subelement or the fine group may match."""
    return item.subelement == category_id or item.group == category_id


def _priority_key(progress: ItemProgress | None, now: datetime) -> Tuple:
    # Unseen items keep their input order behind every item with a record.
    if progress is None:
        return (1,)
    not_due = 0 if _as_aware(progress.next_review) <= now else 1
    score = progress.mastery_score if progress.mastery_score is not None else 0.0
    last_seen = _as_aware(progress.last_attempt) if progress.last_attempt else _EPOCH
    return (0, not_due, score, last_seen)


def select_items_for_slots(
    candidates: Sequence[ItemT],
    slots: Mapping[str, int],
    progress: Mapping[str, ItemProgress],
    *,
    now: datetime | None = None,
) -> List[ItemT]:
    """Pick up to ``slots[category]`` items per category, in slot order.

    An item matching several categories is taken at most once.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    selected: List[ItemT] = []
    used: Set[str] = set()
    keys: Dict[str, Tuple] = {}

    for category_id, slot_count in slots.items():
        if slot_count <= 0:
            continue
        pool = [
            item
            for item in candidates
            if matches_category(item, category_id) and item.id not in used
        ]
        if not pool:
            continue

        for item in pool:
            if item.id not in keys:
                keys[item.id] = _priority_key(progress.get(item.id), now)
        pool.sort(key=lambda item: keys[item.id])

        for item in pool[:slot_count]:
            selected.append(item)
            used.add(item.id)

    return selected
