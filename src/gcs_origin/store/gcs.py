"""Google Cloud Storage backed store client."""

from __future__ import annotations

from google.cloud import storage

from gcs_origin.store.base import BlobReader, ObjectMetadata, ObjectMissing
from gcs_origin.utils import logging

logger = logging.get_logger(__name__)

# Size of each ranged download behind a reader; callers read smaller slices from it.
DEFAULT_READ_BUFFER = 4 * 1024 * 1024


def quote_etag(etag: str) -> str:
    """GCS returns bare ETags; HTTP wants them quoted."""
    if etag.startswith(('"', 'W/"')):
        return etag
    return f'"{etag}"'


class GCSBlobStore:
    def __init__(
        self,
        client: storage.Client,
        bucket_name: str,
        read_buffer_size: int = DEFAULT_READ_BUFFER,
    ) -> None:
        self.client = client
        self.bucket_name = bucket_name
        self.bucket = client.bucket(bucket_name)
        self.read_buffer_size = read_buffer_size

    @classmethod
    def connect(cls, bucket_name: str, project_id: str | None = None, key_file: str | None = None) -> GCSBlobStore:
        if key_file:
            client = storage.Client.from_service_account_json(key_file, project=project_id)
            auth_method = "service_account_key"
        else:
            client = storage.Client(project=project_id)
            auth_method = "application_default_credentials"
        logger.info(
            "GCS client initialized",
            extra={"project_id": client.project, "bucket": bucket_name, "auth_method": auth_method},
        )
        return cls(client, bucket_name)

    def stat(self, key: str) -> ObjectMetadata:
        blob = self.bucket.get_blob(key)
        if blob is None:
            raise ObjectMissing(key)
        return ObjectMetadata(
            etag=quote_etag(blob.etag or ""),
            last_modified=blob.updated,
            size=blob.size or 0,
            generation=blob.generation,
        )

    def open(self, key: str, generation: int | None = None) -> BlobReader:
        blob = self.bucket.blob(key, generation=generation)
        return blob.open("rb", chunk_size=self.read_buffer_size)

    def close(self) -> None:
        self.client.close()
