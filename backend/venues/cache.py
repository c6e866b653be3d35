from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Callable, Hashable

Clock = Callable[[], float]

DEFAULT_TTL = 3600  # 1 hour


def make_key(request_dict: dict) -> str:
    normalized = json.dumps(request_dict, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def coordinate_key(latitude: float, longitude: float, precision: int = 2) -> str:
    """Round a coordinate so nearby lookups share one cache entry.

    Two decimals is roughly a 1 km cell.
    """
    return f"{round(latitude, precision):.{precision}f},{round(longitude, precision):.{precision}f}"


class TTLCache:
    """Key/value cache with an explicit TTL and an injectable clock.

    ``ttl=None`` keeps entries forever. Expired entries are not served by
    ``get`` but stay available to ``get_stale`` until overwritten or cleared,
    so callers can fall back to old data when a refresh fails.
    """

    def __init__(self, ttl: float | None = DEFAULT_TTL, clock: Clock = time.time) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[Hashable, dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _fresh(self, entry: dict[str, Any]) -> bool:
        if self.ttl is None:
            return True
        return self.clock() - entry["created_at"] < self.ttl

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and self._fresh(entry):
            self.hits += 1
            return entry["value"]
        self.misses += 1
        return None

    def get_stale(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        return entry["value"] if entry is not None else None

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = {"value": value, "created_at": self.clock()}

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 1) if total > 0 else 0.0,
            "ttl_seconds": self.ttl,
        }
