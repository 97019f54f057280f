"""Coordinates storage reads, the pure scheduling pipeline and answer writes."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db import ensure_utc
from src.db.categories import list_category_progress
from src.db.learners import get_learner_statistics, increment_learner_statistics, upsert_learner
from src.db.progress import (
    get_due_item_ids,
    get_progress_map,
    get_upcoming_item_ids,
    record_answer,
)
from src.scheduling.mix import (
    ProgressStats,
    assemble_practice_batch,
    compute_progress_stats,
    plan_practice_mix,
)
from src.scheduling.models import (
    ItemKind,
    ItemProgress,
    MasteryStatus,
    SelectionResult,
    SessionMode,
    StudyItem,
)
from src.scheduling.session import select_cards
from src.scheduling.srs import DEFAULT_CONFIDENCE
from src.scheduling.weights import default_category_progress, recommend_mode
from src.services.pools import ItemPoolProvider


LOGGER = logging.getLogger(__name__)


class DrillService:
    """Builds study batches for a learner and records their answers.

    Answers to the same item must not be submitted concurrently; the last
    write wins.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pool_provider: ItemPoolProvider,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._session_factory = session_factory
        self._pool_provider = pool_provider
        self._rng = rng or random.Random()

    def _pool(self, level: str, kind: Optional[ItemKind] = None) -> List[StudyItem]:
        items = self._pool_provider.load_pool(level)
        if kind is None:
            return items
        return [item for item in items if item.kind is kind]

    async def get_progress_stats(
        self,
        learner_id: int,
        level: str,
        now: Optional[datetime] = None,
    ) -> ProgressStats:
        """Return status counts, accuracy and due count for a level's questions."""
        if now is None:
            now = datetime.now(timezone.utc)
        pool_ids = [item.id for item in self._pool(level, ItemKind.QUESTION)]
        async with self._session_factory() as session:
            progress = await get_progress_map(session, learner_id, pool_ids)
        return compute_progress_stats(pool_ids, progress, now=now)

    async def get_practice_items(
        self,
        learner_id: int,
        level: str,
        count: int,
        now: Optional[datetime] = None,
    ) -> List[StudyItem]:
        """Return a shuffled practice batch mixing due, new and review questions."""
        if now is None:
            now = datetime.now(timezone.utc)

        pool = self._pool(level, ItemKind.QUESTION)
        if not pool or count <= 0:
            return []
        pool_ids = [item.id for item in pool]
        lookup = {item.id: item for item in pool}

        async with self._session_factory() as session:
            progress = await get_progress_map(session, learner_id, pool_ids)
            due_ids = await get_due_item_ids(session, learner_id, now=now, item_ids=pool_ids)
            review_ids = await get_upcoming_item_ids(
                session, learner_id, now=now, item_ids=pool_ids, exclude=set(due_ids)
            )

        stats = compute_progress_stats(pool_ids, progress, now=now)
        plan = plan_practice_mix(stats, count)
        new_ids = [item_id for item_id in pool_ids if item_id not in progress]

        batch_ids = assemble_practice_batch(plan, due_ids, new_ids, review_ids, count)
        batch = [lookup[item_id] for item_id in batch_ids]
        self._rng.shuffle(batch)

        LOGGER.info(
            "Practice batch for learner %s at %s: planned due=%d new=%d review=%d, returned %d.",
            learner_id,
            level,
            plan.due,
            plan.new,
            plan.review,
            len(batch),
        )
        return batch

    async def recommend(
        self,
        learner_id: int,
        now: Optional[datetime] = None,
    ) -> Tuple[SessionMode, str]:
        """Suggest a session mode from the learner's subelement aggregates."""
        async with self._session_factory() as session:
            categories = await list_category_progress(session, learner_id, category_type="subelement")
            statistics = await get_learner_statistics(session, learner_id)
        last_session = ensure_utc(statistics.last_session_at) if statistics is not None else None
        return recommend_mode(categories, last_session, now=now)

    async def build_flashcard_session(
        self,
        learner_id: int,
        level: str,
        *,
        concept_count: int,
        question_count: int,
        mode: Optional[SessionMode] = None,
        focus_categories: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> SelectionResult:
        """Select interleaved concept and question cards for one session.

        Once the learner has any stored subelement aggregate, pool
        subelements they have never studied are added as zero-attempt
        aggregates so they keep competing for exploration slots.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if mode is None:
            mode, reason = await self.recommend(learner_id, now=now)
            LOGGER.info("Using recommended %s mode for learner %s: %s", mode.value, learner_id, reason)

        pool = self._pool(level)
        concepts = [item for item in pool if item.kind is ItemKind.CONCEPT]
        questions = [item for item in pool if item.kind is ItemKind.QUESTION]
        subelements = {item.subelement for item in pool}

        async with self._session_factory() as session:
            categories = await list_category_progress(
                session, learner_id, category_ids=subelements, category_type="subelement"
            )
            progress = await get_progress_map(session, learner_id, [item.id for item in pool])

        if categories:
            studied = {category.category_id for category in categories}
            categories.extend(
                category
                for category in default_category_progress(pool)
                if category.category_id not in studied
            )

        return select_cards(
            concepts,
            questions,
            progress,
            categories,
            concept_count=concept_count,
            question_count=question_count,
            mode=mode,
            focus_categories=focus_categories,
            rng=self._rng,
            now=now,
        )

    async def submit_answer(
        self,
        learner_id: int,
        item: StudyItem,
        is_correct: bool,
        *,
        confidence: int = DEFAULT_CONFIDENCE,
        now: Optional[datetime] = None,
    ) -> ItemProgress:
        """Record an answer and return the item's updated schedule."""
        if now is None:
            now = datetime.now(timezone.utc)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await upsert_learner(session, learner_id)
                    before = await get_progress_map(session, learner_id, [item.id])
                    was_mastered = item.id in before and before[item.id].status is MasteryStatus.MASTERED
                    updated = await record_answer(
                        session, learner_id, item, is_correct, confidence=confidence, now=now
                    )
                    newly_mastered = updated.status is MasteryStatus.MASTERED and not was_mastered
                    await increment_learner_statistics(
                        session,
                        learner_id,
                        answered=1,
                        correct=1 if is_correct else 0,
                        mastered=1 if newly_mastered else 0,
                        session_at=now,
                    )
        except Exception as exc:
            LOGGER.exception("Failed to save progress for item %s (learner %s).", item.id, learner_id)
            raise RuntimeError(f"Failed to save progress for item {item.id}") from exc

        return updated
