from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import io
import threading
import time

from gcs_origin.store.base import ObjectMetadata, ObjectMissing


class StoreUnavailable(Exception):
    pass


class MockBlobReader:
    def __init__(self, data: bytes, fail_after: int | None = None, delay: float = 0.0) -> None:
        self._buffer = io.BytesIO(data)
        self._fail_after = fail_after
        self._delay = delay
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError("read from closed reader")
        if self._delay:
            time.sleep(self._delay)
        if self._fail_after is not None and self._buffer.tell() >= self._fail_after:
            raise StoreUnavailable("connection reset by store")
        if self._fail_after is not None:
            remaining = self._fail_after - self._buffer.tell()
            size = remaining if size < 0 else min(size, remaining)
        return self._buffer.read(size)

    def close(self) -> None:
        self.closed = True


class MockBlobStore:
    """In-memory store with knobs for injecting store-side failures.

    ``fail_stat`` / ``fail_open`` make the respective call raise,
    ``fail_after`` cuts a read stream after that many bytes, ``truncate_to``
    makes a stream end early without an error, and ``latency`` adds a
    per-key delay to ``stat``.
    """

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, ObjectMetadata]] = {}
        self._lock = threading.Lock()
        self.fail_stat: set[str] = set()
        self.fail_open: set[str] = set()
        self.fail_after: dict[str, int] = {}
        self.truncate_to: dict[str, int] = {}
        self.latency: dict[str, float] = {}
        self.read_delay: float = 0.0
        self.readers: list[MockBlobReader] = []
        self.stat_calls = 0
        self._generation = 0
        self.closed = False

    def put(self, key: str, data: bytes, updated: datetime | None = None) -> ObjectMetadata:
        with self._lock:
            self._generation += 1
            generation = self._generation
            metadata = ObjectMetadata(
                etag=f'"{hashlib.md5(data).hexdigest()}"',  # noqa: S324
                last_modified=updated or datetime.now(timezone.utc),
                size=len(data),
                generation=generation,
            )
            self._objects[key] = (data, metadata)
        return metadata

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def stat(self, key: str) -> ObjectMetadata:
        self.stat_calls += 1
        if key in self.latency:
            time.sleep(self.latency[key])
        if key in self.fail_stat:
            raise StoreUnavailable(f"stat failed for {key}")
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise ObjectMissing(key)
        return entry[1]

    def open(self, key: str, generation: int | None = None) -> MockBlobReader:
        if key in self.fail_open:
            raise StoreUnavailable(f"open failed for {key}")
        with self._lock:
            entry = self._objects.get(key)
        if entry is None or (generation is not None and entry[1].generation != generation):
            raise ObjectMissing(key)
        data = entry[0]
        if key in self.truncate_to:
            data = data[: self.truncate_to[key]]
        reader = MockBlobReader(data, fail_after=self.fail_after.get(key), delay=self.read_delay)
        self.readers.append(reader)
        return reader

    def close(self) -> None:
        self.closed = True
