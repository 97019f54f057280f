"""Item pool providers keyed by exam level."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol

from src.scheduling.models import ItemKind, StudyItem


LOGGER = logging.getLogger(__name__)

_KNOWN_FIELDS = {"id", "subelement", "group", "kind"}


class ItemPoolProvider(Protocol):
    """Anything able to return the study items of one exam level."""

    def load_pool(self, level: str) -> List[StudyItem]:
        ...


def parse_item(raw: Dict[str, Any]) -> StudyItem:
    """Build a study item from a pool entry; extra keys land in ``payload``."""
    item_id = str(raw["id"]).strip()
    subelement = str(raw.get("subelement") or item_id[:2]).strip()
    group = str(raw.get("group") or item_id[:3]).strip()
    kind = ItemKind(raw.get("kind", ItemKind.QUESTION.value))
    payload = {key: value for key, value in raw.items() if key not in _KNOWN_FIELDS}
    return StudyItem(id=item_id, subelement=subelement, group=group, kind=kind, payload=payload)


class JsonPoolProvider:
    """Read ``<directory>/<level>.json`` files holding an ``items`` list."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def load_pool(self, level: str) -> List[StudyItem]:
        path = self._directory / f"{level}.json"
        if not path.is_file():
            LOGGER.warning("No item pool available for level %s at %s.", level, path)
            return []

        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Failed to parse item pool %s.", path)
            raise RuntimeError(f"Item pool for level {level} is not valid JSON.") from exc

        entries = raw.get("items", []) if isinstance(raw, dict) else raw
        items: List[StudyItem] = []
        for index, entry in enumerate(entries, start=1):
            if not isinstance(entry, dict) or not entry.get("id"):
                LOGGER.warning("Skipping malformed entry #%d in %s.", index, path)
                continue
            items.append(parse_item(entry))

        LOGGER.info("Loaded %d items for level %s.", len(items), level)
        return items


class CachedPoolProvider:
    """Memoize another provider's pools per level."""

    def __init__(self, provider: ItemPoolProvider) -> None:
        self._provider = provider
        self._cache: Dict[str, List[StudyItem]] = {}

    def load_pool(self, level: str) -> List[StudyItem]:
        pool = self._cache.get(level)
        if pool is None:
            pool = self._provider.load_pool(level)
            self._cache[level] = pool
        return list(pool)

    def clear(self) -> None:
        self._cache.clear()
