"""Capabilities the origin needs from a blob store.

A store client is long-lived and shared by every request, so implementations
must be safe to call from several threads at once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic.dataclasses import dataclass


class ObjectMissing(Exception):
    """Raised by store clients when the key does not exist.

    Any other exception from a store client is treated as a transient failure.
    """

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key


@dataclass(frozen=True)
class ObjectMetadata:
    etag: str
    last_modified: datetime
    size: int
    generation: int | None = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"size must be >= 0, got {self.size}")


@runtime_checkable
class BlobReader(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


@runtime_checkable
class BlobStoreClient(Protocol):
    def stat(self, key: str) -> ObjectMetadata: ...

    def open(self, key: str, generation: int | None = None) -> BlobReader: ...

    def close(self) -> None: ...
