"""Turn category weights into an integer slot budget per category."""

from __future__ import annotations

import math
from typing import Dict, Sequence

from src.scheduling.models import CategoryWeight, WeightReason


MAX_CATEGORY_SHARE = 0.4
MIN_CATEGORY_WEIGHT = 0.05


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return math.floor(value + 0.5)


def allocate_slots(weights: Sequence[CategoryWeight], total_slots: int) -> Dict[str, int]:
    """Allocate ``total_slots`` across categories, heaviest first.

    Each category is capped at ``ceil(total_slots * 0.4)``. The returned
    dict keeps allocation order. Its values may sum to less than
    ``total_slots`` when the cap leaves slots that no weak category can
    absorb, so callers must tolerate a partial fill.
    """
    slots: Dict[str, int] = {}
    remaining = max(0, total_slots)
    if remaining == 0:
        return slots

    ordered = sorted(weights, key=lambda w: w.weight, reverse=True)
    share_cap = math.ceil(total_slots * MAX_CATEGORY_SHARE)

    for entry in ordered:
        if remaining <= 0:
            break
        allocated = round_half_up(entry.weight * total_slots)
        floor = 1 if entry.weight > MIN_CATEGORY_WEIGHT else 0
        allocated = min(max(allocated, floor), share_cap, remaining)
        if allocated > 0:
            slots[entry.category_id] = allocated
            remaining -= allocated

    if remaining > 0:
        for entry in ordered:
            if remaining <= 0:
                break
            if entry.reason != WeightReason.WEAK:
                continue
            slots[entry.category_id] = slots.get(entry.category_id, 0) + 1
            remaining -= 1

    return slots
