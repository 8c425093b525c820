from __future__ import annotations

from fastapi.concurrency import run_in_threadpool

from gcs_origin.core.errors import ObjectNotFoundError, TransientStoreError
from gcs_origin.store.base import BlobStoreClient, ObjectMetadata, ObjectMissing
from gcs_origin.store.cache import MetadataCache
from gcs_origin.utils import logging

logger = logging.get_logger(__name__)


class MetadataGateway:
    """Looks up object metadata and classifies store failures.

    "Does not exist" becomes ``ObjectNotFoundError``; every other failure
    (network, permissions, quota, credentials) becomes ``TransientStoreError``.
    """

    def __init__(self, store: BlobStoreClient, cache: MetadataCache | None = None) -> None:
        self.store = store
        self.cache = cache

    async def stat(self, key: str) -> ObjectMetadata:
        metadata, _ = await self.lookup(key)
        return metadata

    async def lookup(self, key: str) -> tuple[ObjectMetadata, bool]:
        """Return the metadata and whether it came from the cache."""
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Metadata cache hit for %s", key, extra={"object_name": key})
                return cached, True

        try:
            metadata = await run_in_threadpool(self.store.stat, key)
        except ObjectMissing as exc:
            logger.warning("File not found", extra={"object_name": key})
            raise ObjectNotFoundError(key) from exc
        except Exception as exc:
            logger.error(
                "Failed to get object attributes",
                exc_info=exc,
                extra={"object_name": key, "error": str(exc)},
            )
            raise TransientStoreError(key, "Failed to access file", detail=str(exc)) from exc

        if self.cache is not None:
            self.cache.put(key, metadata)
        return metadata, False

    def forget(self, key: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(key)
