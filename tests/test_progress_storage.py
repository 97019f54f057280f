from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from src.db import AnswerEvent, ensure_utc
from src.db.categories import list_category_progress
from src.db.learners import upsert_learner
from src.db.progress import (
    get_due_item_ids,
    get_item_progress,
    get_progress_map,
    get_upcoming_item_ids,
    record_answer,
    reset_progress,
)
from src.scheduling.models import MasteryStatus, StudyItem, Trend


NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)
LEARNER_ID = 4242


def _item(item_id: str) -> StudyItem:
    return StudyItem(item_id, item_id[:2], item_id[:3])


@pytest.mark.asyncio
async def test_record_answer_creates_progress_and_aggregates(session_factory) -> None:
    item = _item("T1A01")

    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, LEARNER_ID)
            progress = await record_answer(session, LEARNER_ID, item, True, now=NOW)
        async with session.begin():
            stored = await get_item_progress(session, LEARNER_ID, item.id)
            categories = await list_category_progress(session, LEARNER_ID)
            events = await session.scalar(select(func.count()).select_from(AnswerEvent))

    assert progress.attempts == 1
    assert progress.interval == 1
    assert progress.status is MasteryStatus.LEARNING
    assert stored is not None
    assert stored.subelement == "T1"
    assert stored.group == "T1A"
    assert ensure_utc(stored.next_review) == datetime(2026, 10, 20, tzinfo=timezone.utc)
    assert stored.confidence_history == [3]
    assert [(c.category_id, c.category_type) for c in categories] == [
        ("T1", "subelement"),
        ("T1A", "group"),
    ]
    assert categories[0].recent_accuracy == 1.0
    assert events == 1


@pytest.mark.asyncio
async def test_repeated_answers_update_progress_and_trend(session_factory) -> None:
    item = _item("T2B03")

    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, LEARNER_ID)
            await record_answer(session, LEARNER_ID, item, True, now=NOW - timedelta(days=1))
        async with session.begin():
            progress = await record_answer(session, LEARNER_ID, item, False, confidence=5, now=NOW)
        async with session.begin():
            categories = await list_category_progress(
                session, LEARNER_ID, category_type="subelement"
            )

    assert progress.attempts == 2
    assert progress.correct_count == 1
    assert progress.interval == 1
    assert progress.ease == pytest.approx(2.4)
    assert progress.confidence_history == [3, 5]
    assert len(categories) == 1
    subelement = categories[0]
    assert subelement.total_attempts == 2
    assert subelement.recent_accuracy == pytest.approx(0.5)
    assert subelement.weakness_score == pytest.approx(0.5)
    assert subelement.trend is Trend.DECLINING
    assert ensure_utc(subelement.last_studied) == NOW


@pytest.mark.asyncio
async def test_due_and_upcoming_queries(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, LEARNER_ID)
            await record_answer(session, LEARNER_ID, _item("T1A01"), True, now=NOW - timedelta(days=3))
            await record_answer(session, LEARNER_ID, _item("T1A02"), True, now=NOW)
            await record_answer(session, LEARNER_ID, _item("T1A03"), True, now=NOW - timedelta(days=10))

        due = await get_due_item_ids(session, LEARNER_ID, now=NOW)
        due_filtered = await get_due_item_ids(
            session, LEARNER_ID, now=NOW, item_ids=["T1A01", "T1A02"]
        )
        most_urgent = await get_due_item_ids(session, LEARNER_ID, now=NOW, limit=1)
        upcoming = await get_upcoming_item_ids(session, LEARNER_ID, now=NOW)
        upcoming_excluded = await get_upcoming_item_ids(
            session, LEARNER_ID, now=NOW, exclude={"T1A02"}
        )

    assert due == ["T1A03", "T1A01"]
    assert due_filtered == ["T1A01"]
    assert most_urgent == ["T1A03"]
    assert upcoming == ["T1A02"]
    assert upcoming_excluded == []


@pytest.mark.asyncio
async def test_progress_map_filters_by_learner_and_items(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, LEARNER_ID)
            await record_answer(session, LEARNER_ID, _item("T3C01"), True, now=NOW)
            await record_answer(session, LEARNER_ID, _item("T3C02"), False, now=NOW)
            await record_answer(session, LEARNER_ID, _item("T3C02"), True, now=NOW)

        progress = await get_progress_map(session, LEARNER_ID)
        limited = await get_progress_map(session, LEARNER_ID, ["T3C01", "T9Z99"])
        other_learner = await get_progress_map(session, LEARNER_ID + 1)

    assert set(progress) == {"T3C01", "T3C02"}
    assert progress["T3C02"].attempts == 2
    assert progress["T3C02"].correct_count == 1
    assert set(limited) == {"T3C01"}
    assert other_learner == {}
    assert progress["T3C01"].next_review.tzinfo is not None


@pytest.mark.asyncio
async def test_reset_progress(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, LEARNER_ID)
            for item_id in ("T4A01", "T4A02", "T5B01"):
                await record_answer(session, LEARNER_ID, _item(item_id), True, now=NOW)

        async with session.begin():
            removed_one = await reset_progress(session, LEARNER_ID, ["T4A01"])
        async with session.begin():
            remaining = await get_progress_map(session, LEARNER_ID)
            categories_after_partial = await list_category_progress(session, LEARNER_ID)

        async with session.begin():
            removed_rest = await reset_progress(session, LEARNER_ID)
        emptied = await get_progress_map(session, LEARNER_ID)
        categories_after_full = await list_category_progress(session, LEARNER_ID)
        events = await session.scalar(select(func.count()).select_from(AnswerEvent))

    assert removed_one == 1
    assert set(remaining) == {"T4A02", "T5B01"}
    assert len(categories_after_partial) == 4
    assert removed_rest == 2
    assert emptied == {}
    assert categories_after_full == []
    assert events == 0
