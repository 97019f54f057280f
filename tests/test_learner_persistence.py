import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import List, Tuple

import pytest

from src.db import ensure_utc, run_migrations_if_needed
from src.db.learners import get_learner_statistics, increment_learner_statistics, upsert_learner


class _StubSession:
    def __init__(self) -> None:
        self._records: dict[int, object] = {}
        self.flush_calls = 0

    async def get(self, model: object, learner_id: int) -> object:
        return self._records.get(learner_id)

    def add(self, learner: object) -> None:
        self._records[getattr(learner, "learner_id")] = learner

    async def flush(self) -> None:
        self.flush_calls += 1


async def _exercise_learner_upsert() -> None:
    session = _StubSession()

    created = await upsert_learner(session, learner_id=101, display_name="Anna")
    assert session._records[101] is created
    assert created.display_name == "Anna"
    assert created.created_at.tzinfo is not None
    assert created.updated_at == created.created_at
    assert session.flush_calls == 0

    renamed = await upsert_learner(session, learner_id=101, display_name="Annika")
    assert renamed is created
    assert renamed.display_name == "Annika"
    assert renamed.updated_at >= created.created_at
    assert session.flush_calls == 1

    unchanged = await upsert_learner(session, learner_id=101)
    assert unchanged is created
    assert unchanged.display_name == "Annika"
    assert session.flush_calls == 1  # no flush when nothing changed


def test_upsert_learner_creates_and_renames() -> None:
    asyncio.run(_exercise_learner_upsert())


@pytest.mark.asyncio
async def test_increment_learner_statistics(session_factory) -> None:
    session_at = datetime(2026, 10, 19, 9, 15, tzinfo=timezone.utc)

    async with session_factory() as session:
        async with session.begin():
            await upsert_learner(session, 55, display_name="Kai")
        async with session.begin():
            await increment_learner_statistics(session, 55, answered=3, correct=2, session_at=session_at)
            await increment_learner_statistics(session, 55, answered=1, mastered=1)
            await increment_learner_statistics(session, 55)

    async with session_factory() as session:
        statistics = await get_learner_statistics(session, 55)
        missing = await get_learner_statistics(session, 56)

    assert statistics is not None
    assert statistics.display_name == "Kai"
    assert statistics.items_answered == 4
    assert statistics.items_correct == 2
    assert statistics.items_mastered == 1
    assert statistics.accuracy == pytest.approx(0.5)
    assert ensure_utc(statistics.last_session_at) == session_at
    assert missing is None


def test_run_migrations_if_needed_invokes_upgrade(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[Tuple[object, str]] = []

    def fake_upgrade(config: object, target: str) -> None:
        calls.append((config, target))

    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("RUN_MIGRATIONS_ON_STARTUP", "true")
    monkeypatch.setattr("src.db.command.upgrade", fake_upgrade)

    run_migrations_if_needed()

    assert calls and calls[0][1] == "head"


def test_run_migrations_if_needed_skips_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("RUN_MIGRATIONS_ON_STARTUP", "false")

    calls: deque[str] = deque()

    def fake_upgrade(_: object, target: str) -> None:
        calls.append(target)

    monkeypatch.setattr("src.db.command.upgrade", fake_upgrade)

    run_migrations_if_needed()

    assert not calls
