"""Content-Type and Cache-Control by file extension.

Every object is publicly cacheable; the store is read-only content, so only the
lifetime varies. HTML stays short so edits show up quickly, fingerprinted
assets are immutable.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic.dataclasses import dataclass

HTML_CACHE = "public, max-age=300"
IMMUTABLE_CACHE = "public, max-age=31536000, immutable"
IMAGE_CACHE = "public, max-age=2592000"
DOCUMENT_CACHE = "public, max-age=86400"


@dataclass(frozen=True)
class ContentPolicy:
    content_type: str
    cache_control: str


DEFAULT_POLICY = ContentPolicy("application/octet-stream", IMMUTABLE_CACHE)

POLICIES: dict[str, ContentPolicy] = {
    ".html": ContentPolicy("text/html; charset=utf-8", HTML_CACHE),
    ".js": ContentPolicy("application/javascript; charset=utf-8", IMMUTABLE_CACHE),
    ".css": ContentPolicy("text/css; charset=utf-8", IMMUTABLE_CACHE),
    ".jpg": ContentPolicy("image/jpeg", IMAGE_CACHE),
    ".jpeg": ContentPolicy("image/jpeg", IMAGE_CACHE),
    ".png": ContentPolicy("image/png", IMAGE_CACHE),
    ".gif": ContentPolicy("image/gif", IMAGE_CACHE),
    ".webp": ContentPolicy("image/webp", IMAGE_CACHE),
    ".svg": ContentPolicy("image/svg+xml", IMAGE_CACHE),
    ".ico": ContentPolicy("image/x-icon", IMAGE_CACHE),
    ".pdf": ContentPolicy("application/pdf", DOCUMENT_CACHE),
    ".txt": ContentPolicy("text/plain; charset=utf-8", DOCUMENT_CACHE),
    ".json": ContentPolicy("application/json; charset=utf-8", IMMUTABLE_CACHE),
    ".xml": ContentPolicy("application/xml; charset=utf-8", IMMUTABLE_CACHE),
}


def validate_table(table: dict[str, ContentPolicy]) -> None:
    for ext, policy in table.items():
        if not ext.startswith(".") or ext != ext.lower():
            raise ValueError(f"Extension {ext!r} must be lowercase and start with '.'")
        if not policy.content_type:
            raise ValueError(f"Extension {ext!r} has no content type")
        directives = [d.strip() for d in policy.cache_control.split(",")]
        if "public" not in directives or "no-store" in directives or "no-cache" in directives:
            raise ValueError(f"Extension {ext!r} is not publicly cacheable: {policy.cache_control!r}")


validate_table(POLICIES)


def extension(key: str) -> str:
    return PurePosixPath(key).suffix.lower()


def lookup(key: str) -> ContentPolicy:
    return POLICIES.get(extension(key), DEFAULT_POLICY)
