"""Helpers for working with per-item progress persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduling.models import ItemProgress, MasteryStatus, StudyItem
from src.scheduling.srs import (
    CORRECT_QUALITY,
    DEFAULT_CONFIDENCE,
    INCORRECT_QUALITY,
    apply_answer,
    calculate_priority,
)

from . import AnswerEvent, CategoryProgressRecord, ItemProgressRecord, ensure_utc
from .categories import update_category_progress


LOGGER = logging.getLogger(__name__)


def to_item_progress(record: ItemProgressRecord) -> ItemProgress:
    """Convert a stored record into the scheduler's read model."""
    return ItemProgress(
        item_id=record.item_id,
        attempts=record.attempts,
        correct_count=record.correct_count,
        last_attempt=ensure_utc(record.last_attempt),
        next_review=ensure_utc(record.next_review),
        ease=record.ease,
        interval=record.interval,
        status=MasteryStatus(record.status),
        mastery_score=record.mastery_score,
        confidence_history=list(record.confidence_history or []),
    )


async def get_item_progress(
    session: AsyncSession, learner_id: int, item_id: str
) -> Optional[ItemProgressRecord]:
    """Fetch the stored record of a single item, if the learner has answered it."""
    stmt = select(ItemProgressRecord).where(
        ItemProgressRecord.learner_id == learner_id,
        ItemProgressRecord.item_id == item_id,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_progress_map(
    session: AsyncSession,
    learner_id: int,
    item_ids: Optional[Iterable[str]] = None,
) -> Dict[str, ItemProgress]:
    """Return progress keyed by item id, optionally limited to ``item_ids``."""
    stmt = select(ItemProgressRecord).where(ItemProgressRecord.learner_id == learner_id)
    if item_ids is not None:
        stmt = stmt.where(ItemProgressRecord.item_id.in_(list(item_ids)))

    result = await session.execute(stmt)
    return {record.item_id: to_item_progress(record) for record in result.scalars().all()}


async def get_due_item_ids(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
    item_ids: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
) -> List[str]:
    """Return ids of items due for review, most urgent first."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)

    stmt = (
        select(ItemProgressRecord)
        .where(
            ItemProgressRecord.learner_id == learner_id,
            ItemProgressRecord.next_review <= now,
        )
        .order_by(ItemProgressRecord.next_review, ItemProgressRecord.id)
    )
    if item_ids is not None:
        stmt = stmt.where(ItemProgressRecord.item_id.in_(list(item_ids)))

    result = await session.execute(stmt)
    records = list(result.scalars().all())
    records.sort(
        key=lambda r: calculate_priority(ensure_utc(r.next_review), r.interval, now),
        reverse=True,
    )
    ids = [record.item_id for record in records]
    return ids if limit is None else ids[:limit]


async def get_upcoming_item_ids(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
    item_ids: Optional[Iterable[str]] = None,
    exclude: Optional[Set[str]] = None,
    limit: Optional[int] = None,
) -> List[str]:
    """Return ids of seen items that are not yet due, shortest interval first."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)

    stmt = (
        select(ItemProgressRecord.item_id)
        .where(
            ItemProgressRecord.learner_id == learner_id,
            ItemProgressRecord.next_review > now,
        )
        .order_by(ItemProgressRecord.interval, ItemProgressRecord.id)
    )
    if item_ids is not None:
        stmt = stmt.where(ItemProgressRecord.item_id.in_(list(item_ids)))

    result = await session.execute(stmt)
    excluded = exclude or set()
    ids = [item_id for item_id in result.scalars().all() if item_id not in excluded]
    return ids if limit is None else ids[:limit]


async def record_answer(
    session: AsyncSession,
    learner_id: int,
    item: StudyItem,
    is_correct: bool,
    confidence: int = DEFAULT_CONFIDENCE,
    now: Optional[datetime] = None,
) -> ItemProgress:
    """Persist the outcome of one answer and return the item's new state.

    Both category aggregates of the item (subelement and group) are updated.
    Two concurrent answers to the same item resolve as last write wins.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)

    record = await get_item_progress(session, learner_id, item.id)
    prior = to_item_progress(record) if record is not None else None
    updated = apply_answer(prior, item.id, is_correct, confidence=confidence, now=now)

    if record is None:
        record = ItemProgressRecord(
            learner_id=learner_id,
            item_id=item.id,
            item_kind=item.kind.value,
            subelement=item.subelement,
            group=item.group,
        )
        session.add(record)

    record.attempts = updated.attempts
    record.correct_count = updated.correct_count
    record.last_attempt = updated.last_attempt
    record.next_review = updated.next_review
    record.ease = updated.ease
    record.interval = updated.interval
    record.status = updated.status.value
    record.mastery_score = updated.mastery_score
    record.confidence_history = list(updated.confidence_history)
    record.updated_at = now
    await session.flush()

    session.add(
        AnswerEvent(
            item_progress_id=record.id,
            is_correct=is_correct,
            quality=CORRECT_QUALITY if is_correct else INCORRECT_QUALITY,
            confidence=confidence,
            answered_at=now,
        )
    )
    await update_category_progress(session, learner_id, item.subelement, "subelement", is_correct, now)
    if item.group and item.group != item.subelement:
        await update_category_progress(session, learner_id, item.group, "group", is_correct, now)

    LOGGER.debug(
        "Learner %s answered %s (%s): interval=%s status=%s",
        learner_id,
        item.id,
        "correct" if is_correct else "incorrect",
        updated.interval,
        updated.status.value,
    )
    return updated


async def reset_progress(
    session: AsyncSession,
    learner_id: int,
    item_ids: Optional[Iterable[str]] = None,
) -> int:
    """Delete stored progress; without ``item_ids`` every aggregate goes too."""
    targets = select(ItemProgressRecord.id).where(ItemProgressRecord.learner_id == learner_id)
    if item_ids is not None:
        targets = targets.where(ItemProgressRecord.item_id.in_(list(item_ids)))

    await session.execute(
        delete(AnswerEvent)
        .where(AnswerEvent.item_progress_id.in_(targets))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(ItemProgressRecord)
        .where(ItemProgressRecord.id.in_(targets))
        .execution_options(synchronize_session=False)
    )
    if item_ids is None:
        await session.execute(
            delete(CategoryProgressRecord)
            .where(CategoryProgressRecord.learner_id == learner_id)
            .execution_options(synchronize_session=False)
        )

    LOGGER.info("Reset %s progress records for learner %s.", result.rowcount, learner_id)
    return result.rowcount
