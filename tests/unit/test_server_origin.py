from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
import pytest

from gcs_origin.core.conditional import format_http_date
from gcs_origin.server.api import create_app
from gcs_origin.store.mock import MockBlobStore
from gcs_origin.utils.config import Settings

UPDATED = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["version"]
    assert body["timestamp"]


def test_root_serves_index(client: TestClient, store: MockBlobStore) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.content == b"<html>home</html>"
    assert r.headers["content-type"] == "text/html; charset=utf-8"
    assert r.headers["cache-control"] == "public, max-age=300"
    assert r.headers["etag"] == store.stat("index.html").etag
    assert r.headers["last-modified"] == "Wed, 01 May 2024 12:30:15 GMT"
    assert r.headers["x-proxy-cache"] == "MISS"
    assert r.headers["x-gcs-object"] == "index.html"
    assert r.headers["x-response-time"].endswith("ms")


def test_directory_path_serves_index(client: TestClient) -> None:
    r = client.get("/docs/")
    assert r.status_code == 200
    assert r.content == b"<html>docs</html>"
    assert r.headers["x-gcs-object"] == "docs/index.html"


def test_css_is_immutable(client: TestClient) -> None:
    r = client.get("/assets/app.css")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert r.headers["content-type"] == "text/css; charset=utf-8"


def test_extension_lookup_is_case_insensitive(client: TestClient) -> None:
    r = client.get("/img/logo.PNG")
    assert r.headers["content-type"] == "image/png"
    assert r.headers["cache-control"] == "public, max-age=2592000"


def test_content_length_matches_delivered_bytes(client: TestClient, store: MockBlobStore) -> None:
    r = client.get("/big.bin")
    size = store.stat("big.bin").size
    assert r.status_code == 200
    assert int(r.headers["content-length"]) == size
    assert len(r.content) == size
    assert r.headers["content-type"] == "application/octet-stream"
    assert all(reader.closed for reader in store.readers)


def test_empty_object(client: TestClient) -> None:
    r = client.get("/empty.txt")
    assert r.status_code == 200
    assert r.content == b""
    assert r.headers["content-length"] == "0"


def test_if_none_match_returns_304(client: TestClient, store: MockBlobStore) -> None:
    etag = store.stat("assets/app.css").etag
    r = client.get("/assets/app.css", headers={"If-None-Match": etag})
    assert r.status_code == 304
    assert r.content == b""
    assert r.headers["etag"] == etag
    assert "content-length" not in r.headers
    assert "content-type" not in r.headers
    assert store.readers == []


def test_if_none_match_wins_over_old_date(client: TestClient, store: MockBlobStore) -> None:
    etag = store.stat("assets/app.css").etag
    headers = {"If-None-Match": etag, "If-Modified-Since": "Sat, 01 Jan 2000 00:00:00 GMT"}
    assert client.get("/assets/app.css", headers=headers).status_code == 304


def test_stale_etag_returns_body(client: TestClient) -> None:
    r = client.get("/assets/app.css", headers={"If-None-Match": '"stale"'})
    assert r.status_code == 200
    assert r.content == b"body { color: red; }"


@pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=1)])
def test_if_modified_since_returns_304(client: TestClient, offset: timedelta) -> None:
    r = client.get("/assets/app.js", headers={"If-Modified-Since": format_http_date(UPDATED + offset)})
    assert r.status_code == 304
    assert r.content == b""


def test_if_modified_since_before_update_returns_body(client: TestClient) -> None:
    r = client.get("/assets/app.js", headers={"If-Modified-Since": format_http_date(UPDATED - timedelta(minutes=1))})
    assert r.status_code == 200


def test_unparseable_if_modified_since_is_ignored(client: TestClient) -> None:
    r = client.get("/assets/app.js", headers={"If-Modified-Since": "not a date"})
    assert r.status_code == 200
    assert r.content == b"console.log(1);"


def test_missing_object_is_404(client: TestClient) -> None:
    r = client.get("/nope/missing.css")
    assert r.status_code == 404
    assert r.json() == {"error": "File not found", "path": "nope/missing.css"}
    assert r.headers["content-type"] == "application/json"


def test_missing_directory_index_is_404(client: TestClient) -> None:
    r = client.get("/nowhere/")
    assert r.status_code == 404
    assert r.json()["path"] == "nowhere/index.html"


def test_metadata_failure_is_500(client: TestClient, store: MockBlobStore) -> None:
    store.fail_stat.add("assets/app.css")
    r = client.get("/assets/app.css")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error", "message": "Failed to access file"}


def test_open_failure_is_500_not_partial_200(client: TestClient, store: MockBlobStore) -> None:
    store.fail_open.add("big.bin")
    r = client.get("/big.bin")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error", "message": "Failed to read file"}
    assert "x-gcs-object" not in r.headers


def test_first_read_failure_is_500(client: TestClient, store: MockBlobStore) -> None:
    store.fail_after["big.bin"] = 0
    r = client.get("/big.bin")
    assert r.status_code == 500
    assert r.json()["message"] == "Failed to read file"


def test_development_mode_exposes_detail(store: MockBlobStore) -> None:
    store.fail_stat.add("index.html")
    settings = Settings(bucket_name="test-bucket", environment="development")
    with TestClient(create_app(settings, store=store)) as client:
        r = client.get("/")
    assert r.status_code == 500
    assert r.json()["message"] == "stat failed for index.html"


def test_missing_bucket_is_configuration_error() -> None:
    with TestClient(create_app(Settings(bucket_name=None))) as client:
        r = client.get("/index.html")
        assert r.status_code == 500
        assert r.json() == {"error": "Server configuration error"}
        assert client.get("/health").status_code == 200


def test_store_closed_on_shutdown(settings: Settings, store: MockBlobStore) -> None:
    with TestClient(create_app(settings, store=store)) as client:
        client.get("/health")
        assert not store.closed
    assert store.closed


def test_metadata_cache_still_honours_etag(store: MockBlobStore) -> None:
    settings = Settings(bucket_name="test-bucket", metadata_cache_ttl=60)
    with TestClient(create_app(settings, store=store)) as client:
        etag = client.get("/assets/app.css").headers["etag"]
        r = client.get("/assets/app.css", headers={"If-None-Match": etag})
        assert r.status_code == 304
        assert client.get("/assets/app.css", headers={"If-None-Match": '"old"'}).status_code == 200
    assert store.stat_calls == 1


def test_replaced_object_is_served_fresh_despite_cache(store: MockBlobStore) -> None:
    settings = Settings(bucket_name="test-bucket", metadata_cache_ttl=60)
    with TestClient(create_app(settings, store=store)) as client:
        old_etag = client.get("/assets/app.css").headers["etag"]
        store.put("assets/app.css", b"body { color: blue; }")

        r = client.get("/assets/app.css")
        assert r.status_code == 200
        assert r.content == b"body { color: blue; }"
        assert r.headers["etag"] != old_etag
        assert r.headers["etag"] == store.stat("assets/app.css").etag
    assert store.stat_calls == 3


def test_deleted_object_is_404_despite_cache(store: MockBlobStore) -> None:
    settings = Settings(bucket_name="test-bucket", metadata_cache_ttl=60)
    with TestClient(create_app(settings, store=store)) as client:
        assert client.get("/assets/app.css").status_code == 200
        store.delete("assets/app.css")

        r = client.get("/assets/app.css")
        assert r.status_code == 404
        assert r.json() == {"error": "File not found", "path": "assets/app.css"}


def test_uncached_open_failure_is_not_retried(store: MockBlobStore) -> None:
    settings = Settings(bucket_name="test-bucket", metadata_cache_ttl=60)
    store.fail_open.add("assets/app.css")
    with TestClient(create_app(settings, store=store)) as client:
        r = client.get("/assets/app.css")
        assert r.status_code == 500
        assert r.json()["message"] == "Failed to read file"
    assert store.stat_calls == 1


def test_non_get_method_is_rejected(client: TestClient) -> None:
    r = client.post("/index.html")
    assert r.status_code == 405
    assert r.json()["error"] == "Method Not Allowed"


def test_security_and_cors_headers(client: TestClient) -> None:
    r = client.get("/index.html", headers={"Origin": "https://example.com"})
    assert r.headers["x-content-type-options"] == "nosniff"
    assert r.headers["x-frame-options"] == "SAMEORIGIN"
    assert r.headers["access-control-allow-origin"] == "*"


def test_cors_preflight(client: TestClient) -> None:
    r = client.options(
        "/index.html",
        headers={"Origin": "https://example.com", "Access-Control-Request-Method": "GET"},
    )
    assert r.status_code == 200
    assert "GET" in r.headers["access-control-allow-methods"]
