"""Blob store access.

- `BlobStoreClient`: the stat/open capability pair the origin serves from.
- `GCSBlobStore`: Google Cloud Storage implementation.
- `MockBlobStore`: in-memory implementation for tests and local runs.
- `MetadataGateway`: classifies store failures and fronts the optional `MetadataCache`.
"""

from gcs_origin.store.base import BlobReader, BlobStoreClient, ObjectMetadata, ObjectMissing
from gcs_origin.store.cache import MetadataCache
from gcs_origin.store.gateway import MetadataGateway
from gcs_origin.store.mock import MockBlobStore

__all__ = [
    "BlobReader",
    "BlobStoreClient",
    "MetadataCache",
    "MetadataGateway",
    "MockBlobStore",
    "ObjectMetadata",
    "ObjectMissing",
]
