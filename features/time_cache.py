import threading
import time
from dataclasses import dataclass
from typing import Any


@dataclass
class CachedEntry:
    key: str
    value: Any
    inserted_at: float


class TimedCache:
    """Key/value store whose entries disappear `ttl` seconds after insertion.

    Expired entries are dropped lazily when they are next looked up.
    """

    def __init__(self, ttl, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._clock() - entry.inserted_at >= self.ttl:
                del self._entries[key]
                return default
            return entry.value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = CachedEntry(key, value, self._clock())

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        marker = object()
        return self.get(key, marker) is not marker

    def __len__(self):
        # counts entries not yet evicted, expired or not
        with self._lock:
            return len(self._entries)
