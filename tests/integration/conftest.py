"""Integration test fixtures.

Starts a gcs-origin server in-process on a free port, backed by an in-memory
store, and provides its base URL.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone
import socket
import threading
import time

import httpx
import pytest

from gcs_origin.server.api import OriginServer
from gcs_origin.store.mock import MockBlobStore
from gcs_origin.utils.config import Settings

UPDATED = datetime(2024, 5, 1, 12, 30, 15, tzinfo=timezone.utc)
BIG = bytes(range(256)) * 4096  # 1 MiB


def _free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _wait_for_server(url: str, timeout: float = 30.0, interval: float = 0.2) -> None:
    """Block until *url* returns a 200 response or *timeout* is reached."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=3)
            if r.status_code == 200:
                return
        except (httpx.ConnectError, httpx.ReadError, httpx.TimeoutException):
            pass
        time.sleep(interval)
    raise TimeoutError(f"Server at {url} did not become ready within {timeout}s")


@pytest.fixture(scope="session")
def store() -> MockBlobStore:
    store = MockBlobStore()
    store.put("index.html", b"<html>home</html>", updated=UPDATED)
    store.put("assets/app.css", b"body { color: red; }", updated=UPDATED)
    store.put("big.bin", BIG, updated=UPDATED)
    store.put("broken.bin", BIG, updated=UPDATED)
    store.put("slow.txt", b"slow", updated=UPDATED)
    store.put("fast.txt", b"fast", updated=UPDATED)
    store.fail_after["broken.bin"] = 256 * 1024
    store.latency["slow.txt"] = 1.5
    return store


@pytest.fixture(scope="session")
def server_url(store: MockBlobStore) -> Generator[str, None, None]:
    """Start the server in a background thread and yield its base URL."""
    port = _free_port()
    url = f"http://127.0.0.1:{port}"

    settings = Settings(bucket_name="test-bucket", host="127.0.0.1", port=port, log_level="warning")
    server = OriginServer(settings, store=store)

    t = threading.Thread(target=server.run, daemon=True)
    t.start()

    try:
        _wait_for_server(f"{url}/health")
        yield url
    finally:
        server.shutdown()
        t.join(timeout=10)


@pytest.fixture(scope="session")
def base_url(server_url: str) -> str:
    return server_url
