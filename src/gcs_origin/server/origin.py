from datetime import datetime, timezone
from functools import partial
import time

from fastapi import Request, Response, status

from gcs_origin.__about__ import __version__
from gcs_origin.core.conditional import Decision, RequestValidators, evaluate, format_http_date
from gcs_origin.core.errors import ConfigurationError, TransientStoreError
from gcs_origin.core.policy import ContentPolicy, lookup
from gcs_origin.core.resolver import resolve
from gcs_origin.core.streamer import DeliveryOutcome, OutcomeKind, ResponseStreamer, elapsed_ms
from gcs_origin.server.schema.base import HealthResponse
from gcs_origin.store.base import BlobStoreClient, ObjectMetadata
from gcs_origin.store.cache import MetadataCache
from gcs_origin.store.gateway import MetadataGateway
from gcs_origin.utils import logging
from gcs_origin.utils.config import Settings


class OriginApi:
    """Origin endpoints that republish bucket objects for a CDN."""

    def __init__(self, settings: Settings, store: BlobStoreClient | None) -> None:
        self.logger = logging.get_logger(__name__)
        self.settings = settings
        self.store = store
        self.gateway: MetadataGateway | None = None
        self.streamer: ResponseStreamer | None = None
        if store is not None:
            cache = None
            if settings.metadata_cache_ttl > 0:
                cache = MetadataCache(settings.metadata_cache_ttl, settings.metadata_cache_size)
            self.gateway = MetadataGateway(store, cache=cache)
            self.streamer = ResponseStreamer(store, chunk_size=settings.chunk_size)

    async def health(self, request: Request, response: Response) -> HealthResponse:
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=__version__,
        )

    def _object_headers(self, key: str, metadata: ObjectMetadata, policy: ContentPolicy) -> dict[str, str]:
        return {
            "Content-Type": policy.content_type,
            "Cache-Control": policy.cache_control,
            "ETag": metadata.etag,
            "Last-Modified": format_http_date(metadata.last_modified),
            "Content-Length": str(metadata.size),
            "X-Proxy-Cache": "MISS",  # the CDN in front rewrites this
            "X-GCS-Object": key,
        }

    def _log_outcome(self, key: str, start: float, policy: ContentPolicy, outcome: DeliveryOutcome) -> None:
        if outcome.kind is OutcomeKind.DELIVERED:
            self.logger.info(
                "Successfully served object",
                extra={
                    "object_name": key,
                    "bytes_served": outcome.bytes_written,
                    "response_time": elapsed_ms(start),
                    "content_type": policy.content_type,
                    "outcome": outcome.kind.value,
                },
            )

    async def proxy(self, request: Request) -> Response:
        start = time.perf_counter()
        if self.gateway is None or self.streamer is None:
            self.logger.error("GCS_BUCKET_NAME environment variable not set or store unavailable")
            raise ConfigurationError("store is not configured")

        key = resolve(request.url.path)
        self.logger.info("Proxying request", extra={"object_name": key, "bucket": self.settings.bucket_name})

        metadata, cached = await self.gateway.lookup(key)
        try:
            return await self._serve(request, key, metadata, start)
        except TransientStoreError:
            if not cached:
                raise
            # The cached generation is gone: the object was replaced or deleted.
            self.logger.info("Cached metadata is stale", extra={"object_name": key, "etag": metadata.etag})
            self.gateway.forget(key)
            metadata = await self.gateway.stat(key)
            return await self._serve(request, key, metadata, start)

    async def _serve(self, request: Request, key: str, metadata: ObjectMetadata, start: float) -> Response:
        policy = lookup(key)
        headers = self._object_headers(key, metadata, policy)

        if evaluate(RequestValidators.from_request(request), metadata) is Decision.NOT_MODIFIED:
            self.logger.info(
                "304 Not Modified",
                extra={"object_name": key, "etag": metadata.etag, "outcome": OutcomeKind.NOT_MODIFIED.value},
            )
            kept = ("ETag", "Cache-Control", "Last-Modified")
            return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={h: headers[h] for h in kept})

        stream = await self.streamer.open(key, metadata)
        headers["X-Response-Time"] = elapsed_ms(start)
        return self.streamer.respond(stream, headers, on_complete=partial(self._log_outcome, key, start, policy))
