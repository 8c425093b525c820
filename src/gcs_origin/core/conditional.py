"""Conditional GET evaluation (If-None-Match / If-Modified-Since)."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum

from fastapi import Request
from pydantic.dataclasses import dataclass

from gcs_origin.store.base import ObjectMetadata


class Decision(str, Enum):
    NOT_MODIFIED = "not_modified"
    PROCEED = "proceed"


@dataclass(frozen=True)
class RequestValidators:
    if_none_match: str | None = None
    if_modified_since: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestValidators:
        return cls(
            if_none_match=request.headers.get("if-none-match"),
            if_modified_since=request.headers.get("if-modified-since"),
        )


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP date, returning ``None`` for anything unparseable."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def evaluate(validators: RequestValidators, metadata: ObjectMetadata) -> Decision:
    # ETag wins over the date check even when both are sent.
    if validators.if_none_match is not None and validators.if_none_match == metadata.etag:
        return Decision.NOT_MODIFIED

    since = parse_http_date(validators.if_modified_since)
    if since is not None:
        # Last-Modified goes out with whole-second resolution, so compare at that resolution.
        last_modified = metadata.last_modified.replace(microsecond=0)
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        if last_modified <= since:
            return Decision.NOT_MODIFIED

    return Decision.PROCEED
