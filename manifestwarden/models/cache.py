"""Offline cache entry metadata."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """Sidecar metadata stored next to each cached blob.

    The blob is addressed by ``url_key`` (hash of the request URL), not by
    its content; ``content_sha256`` records the last-known-good content.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    url_key: str
    content_sha256: str
    size: int
    manifest_fingerprint: str = ""
    cached_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
