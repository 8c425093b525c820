from __future__ import annotations

from collections import OrderedDict
import threading
import time

from gcs_origin.store.base import ObjectMetadata


class MetadataCache:
    """Bounded TTL cache of object metadata, least recently used evicted first.

    Only successful lookups are stored; a missing object is looked up again on
    every request.
    """

    def __init__(self, ttl: float, max_entries: int = 1024) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, ObjectMetadata]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> ObjectMetadata | None:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] <= now:
                if entry is not None:
                    del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry[1]

    def put(self, key: str, metadata: ObjectMetadata) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl, metadata)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
