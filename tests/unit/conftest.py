from collections.abc import Generator
from datetime import datetime, timezone

from fastapi.testclient import TestClient
import pytest

from gcs_origin.server.api import create_app
from gcs_origin.store.mock import MockBlobStore
from gcs_origin.utils.config import Settings

UPDATED = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


@pytest.fixture
def store() -> MockBlobStore:
    store = MockBlobStore()
    store.put("index.html", b"<html>home</html>", updated=UPDATED)
    store.put("docs/index.html", b"<html>docs</html>", updated=UPDATED)
    store.put("assets/app.css", b"body { color: red; }", updated=UPDATED)
    store.put("assets/app.js", b"console.log(1);", updated=UPDATED)
    store.put("img/logo.PNG", b"\x89PNG" + b"\x00" * 100, updated=UPDATED)
    store.put("empty.txt", b"", updated=UPDATED)
    store.put("big.bin", bytes(range(256)) * 1024, updated=UPDATED)
    return store


@pytest.fixture
def settings() -> Settings:
    return Settings(bucket_name="test-bucket", chunk_size=4096)


@pytest.fixture
def client(settings: Settings, store: MockBlobStore) -> Generator[TestClient, None, None]:
    with TestClient(create_app(settings, store=store)) as c:
        yield c
