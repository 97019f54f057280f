from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from . import Learner


@dataclass(slots=True)
class LearnerStatistics:
    """Aggregated counters describing a learner's answering activity."""

    learner_id: int
    display_name: Optional[str]
    created_at: datetime
    last_session_at: Optional[datetime]
    items_answered: int
    items_correct: int
    items_mastered: int

    @property
    def accuracy(self) -> float:
        return self.items_correct / self.items_answered if self.items_answered else 0.0


async def upsert_learner(
    session: AsyncSession,
    learner_id: int,
    display_name: Optional[str] = None,
) -> Learner:
    """Create a learner record or refresh its display name."""
    learner = await session.get(Learner, learner_id)

    if learner is None:
        now = datetime.now(timezone.utc)
        learner = Learner(
            learner_id=learner_id,
            display_name=display_name,
            created_at=now,
            updated_at=now,
        )
        session.add(learner)
        return learner

    if display_name is not None and learner.display_name != display_name:
        learner.display_name = display_name
        learner.updated_at = datetime.now(timezone.utc)
        await session.flush()

    return learner


async def increment_learner_statistics(
    session: AsyncSession,
    learner_id: int,
    *,
    answered: int = 0,
    correct: int = 0,
    mastered: int = 0,
    session_at: Optional[datetime] = None,
) -> None:
    """Increment one or more learner counters."""
    values = {}
    if answered:
        values["items_answered"] = Learner.items_answered + answered
    if correct:
        values["items_correct"] = Learner.items_correct + correct
    if mastered:
        values["items_mastered"] = Learner.items_mastered + mastered
    if session_at is not None:
        values["last_session_at"] = session_at

    if not values:
        return

    values["updated_at"] = datetime.now(timezone.utc)

    stmt = (
        update(Learner)
        .where(Learner.learner_id == learner_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def get_learner_statistics(session: AsyncSession, learner_id: int) -> Optional[LearnerStatistics]:
    """Return consolidated counters for a learner, if present."""
    learner = await session.get(Learner, learner_id)
    if learner is None:
        return None
    return LearnerStatistics(
        learner_id=learner.learner_id,
        display_name=learner.display_name,
        created_at=learner.created_at,
        last_session_at=learner.last_session_at,
        items_answered=learner.items_answered,
        items_correct=learner.items_correct,
        items_mastered=learner.items_mastered,
    )
