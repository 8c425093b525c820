"""Streaming object bodies from the store to the client.

The stream is opened and its first chunk read before any header is sent, so a
store that fails to open the object still gets a proper 500. After that the
status is committed: a failure can only abort the connection.

Chunks are pulled one at a time and the next read starts only once the server
has taken the previous one, so a slow client slows down the store reads
instead of growing a buffer.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping
from enum import Enum
import time

from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from pydantic.dataclasses import dataclass
from starlette.types import Receive, Scope, Send

from gcs_origin.core.errors import ErrorKind, StreamInterrupted, TransientStoreError
from gcs_origin.store.base import BlobReader, BlobStoreClient, ObjectMetadata
from gcs_origin.utils import logging

logger = logging.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def close_reader(key: str, reader: BlobReader) -> None:
    try:
        reader.close()
    except Exception as exc:
        logger.warning("Failed to close reader for %s", key, exc_info=exc, extra={"object_name": key})


class OutcomeKind(str, Enum):
    NOT_MODIFIED = "not_modified"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    kind: OutcomeKind
    bytes_written: int = 0
    failure: ErrorKind | None = None

    @classmethod
    def not_modified(cls) -> DeliveryOutcome:
        return cls(OutcomeKind.NOT_MODIFIED)

    @classmethod
    def delivered(cls, bytes_written: int) -> DeliveryOutcome:
        return cls(OutcomeKind.DELIVERED, bytes_written=bytes_written)

    @classmethod
    def failed(cls, failure: ErrorKind, bytes_written: int = 0) -> DeliveryOutcome:
        return cls(OutcomeKind.FAILED, bytes_written=bytes_written, failure=failure)


class ObjectStream:
    """An opened store reader plus the chunk already read from it."""

    def __init__(self, key: str, metadata: ObjectMetadata, reader: BlobReader, first_chunk: bytes, chunk_size: int):
        self.key = key
        self.metadata = metadata
        self.reader = reader
        self.chunk_size = chunk_size
        self.bytes_written = 0
        self._pending = first_chunk
        self._closed = False

    async def chunks(self) -> AsyncIterator[bytes]:
        expected = self.metadata.size
        chunk = self._pending
        self._pending = b""
        while chunk:
            self.bytes_written += len(chunk)
            yield chunk
            try:
                chunk = await run_in_threadpool(self.reader.read, self.chunk_size)
            except Exception as exc:
                raise StreamInterrupted(self.key, self.bytes_written, expected) from exc
        if self.bytes_written != expected:
            # The store ended early (or late); Content-Length is already on the wire.
            raise StreamInterrupted(self.key, self.bytes_written, expected)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close_reader(self.key, self.reader)


class ObjectResponse(StreamingResponse):
    """StreamingResponse that always releases its store reader and reports how delivery ended."""

    def __init__(
        self,
        stream: ObjectStream,
        headers: Mapping[str, str],
        on_complete: Callable[[DeliveryOutcome], None] | None = None,
    ) -> None:
        super().__init__(stream.chunks(), status_code=200, headers=headers)
        self.stream = stream
        self.on_complete = on_complete
        self.outcome: DeliveryOutcome | None = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except (Exception, asyncio.CancelledError) as exc:
            self._finish(DeliveryOutcome.failed(ErrorKind.STREAM_INTERRUPTED, self.stream.bytes_written), exc)
            raise
        else:
            if self.stream.bytes_written != self.stream.metadata.size:
                # The server returned without draining the body, i.e. the client went away.
                self._finish(DeliveryOutcome.failed(ErrorKind.STREAM_INTERRUPTED, self.stream.bytes_written))
            else:
                self._finish(DeliveryOutcome.delivered(self.stream.bytes_written))
        finally:
            self.stream.close()

    def _finish(self, outcome: DeliveryOutcome, exc: BaseException | None = None) -> None:
        self.outcome = outcome
        if outcome.kind is OutcomeKind.FAILED:
            logger.error(
                "Failed to stream object content",
                exc_info=exc if isinstance(exc, Exception) else None,
                extra={
                    "object_name": self.stream.key,
                    "bytes_written": outcome.bytes_written,
                    "expected_bytes": self.stream.metadata.size,
                    "outcome": outcome.failure.value if outcome.failure else None,
                },
            )
        if self.on_complete is not None:
            self.on_complete(outcome)


class ResponseStreamer:
    def __init__(self, store: BlobStoreClient, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.store = store
        self.chunk_size = chunk_size

    async def open(self, key: str, metadata: ObjectMetadata) -> ObjectStream:
        """Open the object and read its first chunk.

        Raises ``TransientStoreError`` if either step fails; nothing has been
        sent to the client at that point.
        """
        try:
            reader = await run_in_threadpool(self.store.open, key, metadata.generation)
        except Exception as exc:
            logger.error("Failed to create object reader", exc_info=exc, extra={"object_name": key, "error": str(exc)})
            raise TransientStoreError(key, "Failed to read file", detail=str(exc)) from exc

        try:
            first_chunk = await run_in_threadpool(reader.read, self.chunk_size) if metadata.size else b""
        except Exception as exc:
            close_reader(key, reader)
            logger.error("Failed to read object", exc_info=exc, extra={"object_name": key, "error": str(exc)})
            raise TransientStoreError(key, "Failed to read file", detail=str(exc)) from exc

        if metadata.size and not first_chunk:
            close_reader(key, reader)
            logger.error("Object stream ended before any data", extra={"object_name": key, "size": metadata.size})
            raise TransientStoreError(key, "Failed to read file", detail="empty stream for non-empty object")

        return ObjectStream(key, metadata, reader, first_chunk, self.chunk_size)

    def respond(
        self,
        stream: ObjectStream,
        headers: Mapping[str, str],
        on_complete: Callable[[DeliveryOutcome], None] | None = None,
    ) -> ObjectResponse:
        return ObjectResponse(stream, headers, on_complete=on_complete)


def elapsed_ms(start: float) -> str:
    return f"{(time.perf_counter() - start) * 1000:.0f}ms"
