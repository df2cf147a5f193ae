"""
Per-process cache of the restaurant profile seen by a staff member.

Entries are keyed by (restaurant_id, user_id), expire after a fixed TTL and are
dropped for the whole tenant whenever the restaurant is updated. Values are
serialized dicts, never ORM instances, so they outlive the session that loaded
them.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.models import Restaurant
from smartmenu_shared.serializers import serialize_restaurant
from smartmenu_shared.services.customer_service import get_restaurant_or_404

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 1024


class RestaurantCache:
    """Thread-safe TTL cache keyed by tenant and user."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[dict[str, Any], float]] = {}
        self._lock = threading.Lock()

    def get(self, restaurant_id: str, user_id: str) -> dict[str, Any] | None:
        key = (restaurant_id, user_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return dict(value)

    def set(self, restaurant_id: str, user_id: str, value: dict[str, Any]) -> None:
        with self._lock:
            if len(self._entries) >= self.max_entries:
                self._evict_locked()
            self._entries[(restaurant_id, user_id)] = (dict(value), self._clock())

    def invalidate_restaurant(self, restaurant_id: str) -> int:
        """Drop every user's entry for this tenant. Returns how many were removed."""
        with self._lock:
            keys = [key for key in self._entries if key[0] == restaurant_id]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.debug(f"Restaurant cache invalidated for {restaurant_id} ({len(keys)} entries)")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_locked(self) -> None:
        now = self._clock()
        expired = [
            key for key, (_, stored_at) in self._entries.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda key: self._entries[key][1])
            del self._entries[oldest]


restaurant_cache = RestaurantCache()


def get_restaurant_profile(db: Session, restaurant_id: str, user_id: str) -> dict[str, Any]:
    cached = restaurant_cache.get(restaurant_id, user_id)
    if cached is not None:
        return cached
    data = serialize_restaurant(get_restaurant_or_404(db, restaurant_id))
    restaurant_cache.set(restaurant_id, user_id, data)
    return data


def update_restaurant_profile(
    db: Session, restaurant_id: str, changes: dict[str, Any]
) -> dict[str, Any]:
    """Apply profile changes and invalidate the tenant's cache entries."""
    restaurant: Restaurant = get_restaurant_or_404(db, restaurant_id)
    for field, value in changes.items():
        setattr(restaurant, field, value)
    db.flush()
    restaurant_cache.invalidate_restaurant(restaurant_id)
    return serialize_restaurant(restaurant)
