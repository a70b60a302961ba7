# leasesync/domain/errors.py
from __future__ import annotations

from typing import Any


class IngestError(Exception):
    """Base for failures raised by the ingestion pipeline."""


class FetchError(IngestError):
    def __init__(self, url: str, status_code: int | None = None, reason: str | None = None, *, retryable: bool = True):
        self.url = url
        self.status_code = status_code
        self.retryable = retryable
        msg = f"HTTP {status_code}" if status_code else "request failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(f"{msg} ({url})")


class NormalizationError(IngestError):
    pass


class DiscoveryError(IngestError):
    pass


class SourceNotFoundError(IngestError):
    pass


class RunNotFoundError(IngestError):
    pass


def error_entry(message: str, *, listing_id: Any = None, url: str | None = None) -> dict[str, Any]:
    """Structured run error: {"message", "listingId"?, "url"?}."""
    out: dict[str, Any] = {"message": message}
    if listing_id is not None:
        out["listingId"] = str(listing_id)
    if url:
        out["url"] = url
    return out
