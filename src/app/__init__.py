"""Application bootstrap helpers for the Drill Scheduler project."""

from .runtime import build_service, run_preview
from .settings import AppSettings

__all__ = ["build_service", "run_preview", "AppSettings"]
