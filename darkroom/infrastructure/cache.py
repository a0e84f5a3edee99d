from __future__ import annotations

import hashlib
import json
import time
from typing import Dict, Optional, Tuple

from ..config import SETTINGS
from ..editing.adjustments import AdjustmentState


CacheEntry = Tuple[float, bytes]


def preview_key(display_id: str, state: AdjustmentState, max_edge: int) -> str:
    """Rendering is pure, so image identity plus slider values identify the output."""
    encoded = json.dumps(state.to_dict(), sort_keys=True).encode("utf-8")
    return f"{display_id}:{max_edge}:{hashlib.sha1(encoded).hexdigest()}"


class ResponseCache:
    def __init__(self, ttl: float | None = None, limit: int = 16) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._ttl = ttl
        self._limit = limit

    @property
    def ttl(self) -> float:
        return SETTINGS.cache_ttl if self._ttl is None else self._ttl

    def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if not entry:
            return None
        timestamp, data = entry
        if time.time() - timestamp > self.ttl:
            self._entries.pop(key, None)
            return None
        return data

    def put(self, key: str, data: bytes) -> None:
        if key not in self._entries and len(self._entries) >= self._limit:
            oldest = min(self._entries.items(), key=lambda item: item[1][0])[0]
            self._entries.pop(oldest, None)
        self._entries[key] = (time.time(), data)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
