"""Interleave selected items so consecutive items switch topics."""

from __future__ import annotations

import random
from operator import attrgetter
from typing import Callable, Dict, List, Optional, Sequence, TypeVar


T = TypeVar("T")

by_subelement: Callable[[object], str] = attrgetter("subelement")


def interleave(
    items: Sequence[T],
    *,
    rng: Optional[random.Random] = None,
    key: Callable[[T], str] = by_subelement,
) -> List[T]:
    """Reorder items round-robin across their categories.

    Only the order of the category keys is shuffled; items within a category
    keep their relative order. Input with at most one item, or drawn from a
    single category, is returned unchanged.
    """
    if len(items) <= 1:
        return list(items)

    groups: Dict[str, List[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)

    if len(groups) <= 1:
        return list(items)

    if rng is None:
        rng = random.Random()
    order = list(groups)
    rng.shuffle(order)

    result: List[T] = []
    positions = {category: 0 for category in order}
    while len(result) < len(items):
        for category in order:
            group = groups[category]
            index = positions[category]
            if index < len(group):
                result.append(group[index])
                positions[category] = index + 1

    return result


def measure_interleaving(
    items: Sequence[T],
    *,
    key: Callable[[T], str] = by_subelement,
) -> float:
    """Share of adjacent pairs whose categories differ (0 = blocked, 1 = fully mixed)."""
    if len(items) <= 1:
        return 0.0
    switches = sum(1 for current, following in zip(items, items[1:]) if key(current) != key(following))
    return switches / (len(items) - 1)
