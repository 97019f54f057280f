"""Flashcard session assembly and post-session summaries."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from src.scheduling.interleave import interleave
from src.scheduling.models import (
    CategoryProgress,
    CategoryWeight,
    ItemProgress,
    SelectionResult,
    SessionMode,
    StudyItem,
)
from src.scheduling.selector import select_items_for_slots
from src.scheduling.slots import allocate_slots
from src.scheduling.weights import calculate_category_weights, default_category_progress


LOGGER = logging.getLogger(__name__)


def _select_kind(
    items: Sequence[StudyItem],
    categories: Sequence[CategoryProgress],
    count: int,
    mode: SessionMode,
    progress: Mapping[str, ItemProgress],
    rng: random.Random,
    now: datetime,
) -> tuple[List[StudyItem], List[CategoryWeight]]:
    weights = calculate_category_weights(categories, mode, now=now)
    slots = allocate_slots(weights, count)
    chosen = select_items_for_slots(items, slots, progress, now=now)
    return interleave(chosen, rng=rng), weights


def select_cards(
    concept_items: Sequence[StudyItem],
    question_items: Sequence[StudyItem],
    progress: Mapping[str, ItemProgress],
    categories: Sequence[CategoryProgress],
    *,
    concept_count: int,
    question_count: int,
    mode: SessionMode = SessionMode.ADAPTIVE,
    focus_categories: Optional[Iterable[str]] = None,
    rng: Optional[random.Random] = None,
    now: datetime | None = None,
) -> SelectionResult:
    """Choose and order concept and question items for one session.

    Each item kind runs through its own weight, slot and selection pass.
    Without any category history every kind falls back to zero-attempt
    aggregates built from its own items, so slots only go to subelements
    that actually have items of that kind.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if rng is None:
        rng = random.Random()
    mode = SessionMode(mode)

    if categories:
        concept_categories = list(categories)
        question_categories = list(categories)
    else:
        concept_categories = default_category_progress(concept_items)
        question_categories = default_category_progress(question_items)

    focus = set(focus_categories or ())
    if mode is SessionMode.FOCUS and focus:
        concept_categories = [c for c in concept_categories if c.category_id in focus]
        question_categories = [c for c in question_categories if c.category_id in focus]

    concepts, concept_weights = _select_kind(
        concept_items, concept_categories, concept_count, mode, progress, rng, now
    )
    questions, _ = _select_kind(
        question_items, question_categories, question_count, mode, progress, rng, now
    )

    LOGGER.debug(
        "Selected %d/%d concept and %d/%d question items in %s mode.",
        len(concepts),
        concept_count,
        len(questions),
        question_count,
        mode.value,
    )
    return SelectionResult(
        concept_items=concepts,
        question_items=questions,
        category_weights=concept_weights,
    )


@dataclass(slots=True)
class CardResult:
    """Outcome of one card shown during a session."""

    item_id: str
    correct: bool
    time_ms: int = 0


@dataclass(slots=True)
class CategoryPerformance:
    category_id: str
    correct: int
    total: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0


@dataclass(slots=True)
class SessionSummary:
    total_items: int
    concept_accuracy: float
    question_accuracy: float
    time_spent_ms: int
    average_time_per_item: float
    category_performance: List[CategoryPerformance] = field(default_factory=list)
    weakest_category: Optional[str] = None
    strongest_category: Optional[str] = None


def _accuracy(results: Sequence[CardResult]) -> float:
    if not results:
        return 0.0
    return sum(1 for r in results if r.correct) / len(results)


def calculate_session_summary(
    concept_results: Sequence[CardResult],
    question_results: Sequence[CardResult],
    items: Iterable[StudyItem],
    started_at: datetime,
    *,
    now: datetime | None = None,
) -> SessionSummary:
    """Summarize a finished session, grouping performance by item group."""
    if now is None:
        now = datetime.now(timezone.utc)

    lookup = {item.id: item for item in items}
    performance: Dict[str, CategoryPerformance] = {}
    for result in [*concept_results, *question_results]:
        item = lookup.get(result.item_id)
        if item is None:
            continue
        entry = performance.setdefault(item.group, CategoryPerformance(item.group, 0, 0))
        entry.total += 1
        if result.correct:
            entry.correct += 1

    ranked = sorted(performance.values(), key=lambda p: p.accuracy)
    total_items = len(concept_results) + len(question_results)
    time_spent_ms = max(0, int((now - started_at).total_seconds() * 1000))

    return SessionSummary(
        total_items=total_items,
        concept_accuracy=_accuracy(concept_results),
        question_accuracy=_accuracy(question_results),
        time_spent_ms=time_spent_ms,
        average_time_per_item=time_spent_ms / total_items if total_items else 0.0,
        category_performance=ranked,
        weakest_category=ranked[0].category_id if ranked else None,
        strongest_category=ranked[-1].category_id if ranked else None,
    )
