"""Adaptive drill scheduling: item reviews, category weighting and ordering."""

from .interleave import interleave, measure_interleaving
from .mix import PracticeMix, ProgressStats, plan_practice_mix
from .models import (
    CategoryProgress,
    CategoryWeight,
    ItemKind,
    ItemProgress,
    MasteryStatus,
    SelectionResult,
    SessionMode,
    StudyItem,
    Trend,
    WeightReason,
)
from .selector import select_items_for_slots
from .session import select_cards
from .slots import allocate_slots
from .srs import derive_status, process_answer, schedule
from .weights import calculate_category_weights

__all__ = [
    "CategoryProgress",
    "CategoryWeight",
    "ItemKind",
    "ItemProgress",
    "MasteryStatus",
    "PracticeMix",
    "ProgressStats",
    "SelectionResult",
    "SessionMode",
    "StudyItem",
    "Trend",
    "WeightReason",
    "allocate_slots",
    "calculate_category_weights",
    "derive_status",
    "interleave",
    "measure_interleaving",
    "plan_practice_mix",
    "process_answer",
    "schedule",
    "select_cards",
    "select_items_for_slots",
]
