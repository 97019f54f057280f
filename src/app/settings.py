"""Configuration helpers for the Drill Scheduler runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from src.scheduling.models import SessionMode


DEFAULT_POOL_DIR = "data/pools"
DEFAULT_EXAM_LEVEL = "technician"
DEFAULT_PRACTICE_COUNT = 10
DEFAULT_CONCEPT_COUNT = 5
DEFAULT_QUESTION_COUNT = 10
MAX_BATCH_SIZE = 100


def _read_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer.") from exc


def _read_count(name: str, default: int, minimum: int) -> int:
    value = _read_int(name, default)
    if value < minimum or value > MAX_BATCH_SIZE:
        raise RuntimeError(f"{name} must be between {minimum} and {MAX_BATCH_SIZE}.")
    return value


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    pool_dir: str
    exam_level: str
    learner_id: int
    practice_count: int
    concept_count: int
    question_count: int
    session_mode: Optional[SessionMode]
    random_seed: Optional[int]

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Drill Scheduler")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        pool_dir = os.getenv("DRILL_POOL_DIR", DEFAULT_POOL_DIR)
        exam_level = os.getenv("DRILL_EXAM_LEVEL", DEFAULT_EXAM_LEVEL).strip().lower()

        if not exam_level:
            raise RuntimeError("DRILL_EXAM_LEVEL must not be empty.")

        learner_id = _read_int("DRILL_LEARNER_ID", 1)
        if learner_id < 1:
            raise RuntimeError("DRILL_LEARNER_ID must be a positive integer.")

        raw_mode = os.getenv("DRILL_SESSION_MODE", "").strip().lower()
        session_mode: Optional[SessionMode] = None
        if raw_mode:
            try:
                session_mode = SessionMode(raw_mode)
            except ValueError as exc:
                choices = ", ".join(mode.value for mode in SessionMode)
                raise RuntimeError(f"DRILL_SESSION_MODE must be one of: {choices}.") from exc

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            pool_dir=pool_dir,
            exam_level=exam_level,
            learner_id=learner_id,
            practice_count=_read_count("DRILL_PRACTICE_COUNT", DEFAULT_PRACTICE_COUNT, 1),
            concept_count=_read_count("DRILL_CONCEPT_COUNT", DEFAULT_CONCEPT_COUNT, 0),
            question_count=_read_count("DRILL_QUESTION_COUNT", DEFAULT_QUESTION_COUNT, 0),
            session_mode=session_mode,
            random_seed=_read_int("DRILL_RANDOM_SEED", None),
        )
