"""Domain types shared by the scheduling pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class MasteryStatus(str, Enum):
    """Coarse learning stage of a single item."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


class SessionMode(str, Enum):
    """How a flashcard session should bias category selection."""

    ADAPTIVE = "adaptive"
    REVIEW = "review"
    EXPLORE = "explore"
    FOCUS = "focus"


class WeightReason(str, Enum):
    """Why a category received its weight."""

    WEAK = "weak"
    STRONG = "strong"
    EXPLORE = "explore"
    RUSTY = "rusty"
    NORMAL = "normal"


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class ItemKind(str, Enum):
    """Disjoint item families that are selected independently."""

    CONCEPT = "concept"
    QUESTION = "question"


@dataclass(slots=True)
class StudyItem:
    """A single studyable unit: a quiz question or a concept card."""

    id: str
    subelement: str
    group: str
    kind: ItemKind = ItemKind.QUESTION
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ItemProgress:
    """Persisted spaced-repetition state of one item."""

    item_id: str
    attempts: int
    correct_count: int
    last_attempt: Optional[datetime]
    next_review: datetime
    ease: float
    interval: int
    status: MasteryStatus
    mastery_score: Optional[float] = None
    confidence_history: List[int] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.correct_count / self.attempts if self.attempts > 0 else 0.0


@dataclass(slots=True)
class CategoryProgress:
    """Aggregated performance of one topical category."""

    category_id: str
    category_type: str = "subelement"
    total_attempts: int = 0
    total_correct: int = 0
    recent_attempts: int = 0
    recent_correct: int = 0
    overall_accuracy: float = 0.0
    recent_accuracy: float = 0.0
    weakness_score: float = 0.0
    last_studied: Optional[datetime] = None
    trend: Trend = Trend.STABLE


@dataclass(slots=True)
class CategoryWeight:
    """Normalized selection weight of one category."""

    category_id: str
    weight: float
    reason: WeightReason = WeightReason.NORMAL


@dataclass(slots=True)
class SelectionResult:
    """Items chosen for a flashcard session, already interleaved."""

    concept_items: List[StudyItem]
    question_items: List[StudyItem]
    category_weights: List[CategoryWeight]
