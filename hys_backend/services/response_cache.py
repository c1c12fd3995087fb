from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class CacheEntry:
    expires_at: float
    body: bytes
    content_type: str
    status_code: int

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class ResponseCache:
    """In-memory store of raw upstream responses keyed by request signature.

    Entries expire lazily: an expired entry is dropped by the lookup that
    finds it. There is no background sweep and no size bound.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_valid(now):
                return entry
            del self._entries[key]
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def store(
        self,
        key: str,
        *,
        body: bytes,
        content_type: str,
        status_code: int,
        ttl_seconds: float,
    ) -> CacheEntry:
        entry = CacheEntry(
            expires_at=self.clock() + ttl_seconds,
            body=body,
            content_type=content_type,
            status_code=status_code,
        )
        self.set(key, entry)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
