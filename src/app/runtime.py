"""Bootstrap logic for running the drill scheduler."""

from __future__ import annotations

import asyncio
import logging
import random

from src.app.settings import AppSettings
from src.db import get_session_factory, run_migrations_if_needed
from src.scheduling.service import DrillService
from src.services import CachedPoolProvider, JsonPoolProvider


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def build_service(settings: AppSettings) -> DrillService:
    """Wire the storage, item pools and random source into a drill service."""
    rng = random.Random(settings.random_seed) if settings.random_seed is not None else random.Random()
    provider = CachedPoolProvider(JsonPoolProvider(settings.pool_dir))
    return DrillService(get_session_factory(), provider, rng=rng)


async def _preview(service: DrillService, settings: AppSettings) -> None:
    stats = await service.get_progress_stats(settings.learner_id, settings.exam_level)
    LOGGER.info(
        "Level %s: %d items, %d new, %d learning, %d review, %d mastered, %d due, accuracy %.0f%%.",
        settings.exam_level,
        stats.total,
        stats.new,
        stats.learning,
        stats.review,
        stats.mastered,
        stats.due_count,
        stats.accuracy * 100,
    )

    practice = await service.get_practice_items(
        settings.learner_id, settings.exam_level, settings.practice_count
    )
    print("Practice batch:", ", ".join(item.id for item in practice) or "(empty)")

    selection = await service.build_flashcard_session(
        settings.learner_id,
        settings.exam_level,
        concept_count=settings.concept_count,
        question_count=settings.question_count,
        mode=settings.session_mode,
    )
    print("Concept cards:", ", ".join(item.id for item in selection.concept_items) or "(empty)")
    print("Question cards:", ", ".join(item.id for item in selection.question_items) or "(empty)")
    for weight in selection.category_weights:
        print(f"  {weight.category_id}: {weight.weight:.2f} ({weight.reason.value})")


def run_preview(settings: AppSettings) -> None:
    """Print the next practice batch and flashcard session for the configured learner."""
    _configure_logging(settings.log_level)
    print(f"{settings.app_name} is running in {settings.app_env} mode.")

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    service = build_service(settings)
    asyncio.run(_preview(service, settings))
