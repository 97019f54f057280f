"""Item pool providers consumed by the drill service."""

from .pools import CachedPoolProvider, ItemPoolProvider, JsonPoolProvider

__all__ = ["CachedPoolProvider", "ItemPoolProvider", "JsonPoolProvider"]
