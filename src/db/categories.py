"""Helpers for maintaining per-category performance aggregates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduling.models import CategoryProgress, Trend

from . import CategoryProgressRecord, ensure_utc


TREND_MARGIN = 0.1


def to_category_progress(record: CategoryProgressRecord) -> CategoryProgress:
    """Convert a stored aggregate into the scheduler's read model."""
    return CategoryProgress(
        category_id=record.category_id,
        category_type=record.category_type,
        total_attempts=record.total_attempts,
        total_correct=record.total_correct,
        recent_attempts=record.recent_attempts,
        recent_correct=record.recent_correct,
        overall_accuracy=record.overall_accuracy,
        recent_accuracy=record.recent_accuracy,
        weakness_score=record.weakness_score,
        last_studied=ensure_utc(record.last_studied),
        trend=Trend(record.trend),
    )


async def update_category_progress(
    session: AsyncSession,
    learner_id: int,
    category_id: str,
    category_type: str,
    passed: bool,
    now: Optional[datetime] = None,
) -> CategoryProgressRecord:
    """Fold one answer into the category's running aggregate."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = select(CategoryProgressRecord).where(
        CategoryProgressRecord.learner_id == learner_id,
        CategoryProgressRecord.category_id == category_id,
    )
    result = await session.execute(stmt)
    record = result.scalars().first()
    hit = 1 if passed else 0

    if record is None:
        record = CategoryProgressRecord(
            learner_id=learner_id,
            category_id=category_id,
            category_type=category_type,
            total_attempts=1,
            total_correct=hit,
            recent_attempts=1,
            recent_correct=hit,
            overall_accuracy=float(hit),
            recent_accuracy=float(hit),
            weakness_score=float(1 - hit),
            last_studied=now,
            trend=Trend.STABLE.value,
        )
        session.add(record)
        await session.flush()
        return record

    previous_overall = record.overall_accuracy
    record.total_attempts += 1
    record.total_correct += hit
    record.recent_attempts += 1
    record.recent_correct += hit
    record.overall_accuracy = record.total_correct / record.total_attempts
    record.recent_accuracy = record.recent_correct / record.recent_attempts
    record.weakness_score = 1 - record.recent_accuracy
    record.last_studied = now

    if record.recent_accuracy > previous_overall + TREND_MARGIN:
        record.trend = Trend.IMPROVING.value
    elif record.recent_accuracy < previous_overall - TREND_MARGIN:
        record.trend = Trend.DECLINING.value
    else:
        record.trend = Trend.STABLE.value

    await session.flush()
    return record


async def list_category_progress(
    session: AsyncSession,
    learner_id: int,
    category_ids: Optional[Iterable[str]] = None,
    category_type: Optional[str] = None,
) -> List[CategoryProgress]:
    """Return the learner's category aggregates in a stable order."""
    stmt = (
        select(CategoryProgressRecord)
        .where(CategoryProgressRecord.learner_id == learner_id)
        .order_by(CategoryProgressRecord.category_id)
    )
    if category_ids is not None:
        stmt = stmt.where(CategoryProgressRecord.category_id.in_(list(category_ids)))
    if category_type is not None:
        stmt = stmt.where(CategoryProgressRecord.category_type == category_type)

    result = await session.execute(stmt)
    return [to_category_progress(record) for record in result.scalars().all()]
