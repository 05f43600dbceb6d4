"""Content-addressed offline cache for downloaded artifacts.

Storage layout::

    {cache_dir}/{key[0:2]}/{key}.bin    blob
    {cache_dir}/{key[0:2]}/{key}.json   CacheEntry sidecar

``key`` is the SHA-256 of the request URL, not of the body.  Blobs and
sidecars are written to a temp file in the same directory and moved into
place with ``os.replace`` so concurrent readers never see a partial file.

Offline behaviour
-----------------
- A miss is a hard ``CacheMissError``; it is never treated as success.
- If the manifest fingerprint recorded with an entry differs from the
  current one, a staleness warning is logged.  The entry stays usable;
  it is not invalidated automatically.
- Each sidecar records the last-known-good content hash.  A blob that no
  longer matches it fails with ``IntegrityError`` while offline, and is
  refetched while online.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path

from pydantic import ValidationError

from manifestwarden.core.errors import (
    CacheMissError,
    IntegrityError,
    TransportError,
)
from manifestwarden.core.fetcher import HttpFetcher
from manifestwarden.core.hasher import sha256_hex, url_cache_key
from manifestwarden.models.cache import CacheEntry
from manifestwarden.models.context import RunContext
from manifestwarden.models.reports import VerificationResult

logger = logging.getLogger(__name__)


def atomic_write_bytes(target: Path, data: bytes) -> None:
    """Write *data* to *target* via tmp file -> fsync -> rename."""
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=str(target.parent), prefix=f".{target.name}.", delete=False
    ) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, target)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class OfflineCache:
    """URL-keyed artifact cache with an offline mode.

    Parameters
    ----------
    cache_dir:
        Root directory of the cache.  Created if it does not exist.
    fetcher:
        Network transport used on a miss (or on revalidation).  May be
        ``None`` for a cache that only serves what it already holds.
    context:
        Run context supplying the offline flag and the current manifest
        fingerprint.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        fetcher: HttpFetcher | None = None,
        context: RunContext | None = None,
    ) -> None:
        self._base = Path(cache_dir)
        self._base.mkdir(parents=True, exist_ok=True)
        self._fetcher = fetcher
        self._context = context or RunContext()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def offline(self) -> bool:
        return self._context.offline

    @property
    def base_path(self) -> Path:
        return self._base

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _blob_path(self, key: str) -> Path:
        return self._base / key[:2] / f"{key}.bin"

    def _meta_path(self, key: str) -> Path:
        return self._base / key[:2] / f"{key}.json"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, url: str) -> CacheEntry | None:
        """Return the sidecar for *url*, or ``None`` if the URL is not cached."""
        key = url_cache_key(url)
        meta = self._meta_path(key)
        if not meta.exists() or not self._blob_path(key).exists():
            return None
        try:
            return CacheEntry.model_validate_json(meta.read_bytes())
        except ValidationError:
            logger.warning("Unreadable cache metadata for %s; treating as a miss", url)
            return None

    def contains(self, url: str) -> bool:
        return self.lookup(url) is not None

    def stale_reason(self, entry: CacheEntry) -> str | None:
        """Describe why *entry* may be stale relative to the current manifest."""
        current = self._context.manifest_fingerprint
        if current and entry.manifest_fingerprint and entry.manifest_fingerprint != current:
            return (
                f"manifest changed since {entry.url} was cached "
                f"(cache={entry.manifest_fingerprint[:12]} current={current[:12]}); "
                f"cached bytes may be stale"
            )
        return None

    # ------------------------------------------------------------------
    # Store / read
    # ------------------------------------------------------------------

    def store(self, url: str, data: bytes) -> CacheEntry:
        """Atomically write *data* as the cached body for *url*."""
        key = url_cache_key(url)
        entry = CacheEntry(
            url=url,
            url_key=key,
            content_sha256=sha256_hex(data),
            size=len(data),
            manifest_fingerprint=self._context.manifest_fingerprint,
        )
        with self._lock_for(key):
            atomic_write_bytes(self._blob_path(key), data)
            atomic_write_bytes(self._meta_path(key), entry.model_dump_json().encode("utf-8"))
        logger.debug("Cached %s (%d bytes) under %s", url, len(data), key[:16])
        return entry

    def _read_blob(self, entry: CacheEntry) -> bytes:
        with self._lock_for(entry.url_key):
            data = self._blob_path(entry.url_key).read_bytes()
        if sha256_hex(data) != entry.content_sha256:
            raise IntegrityError(
                f"cached blob for {entry.url} no longer matches its recorded content hash",
                result=VerificationResult.HASH_MISMATCH,
            )
        return data

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def fetch_with_cache(self, url: str, *, revalidate: bool = False) -> bytes:
        """Return the body of *url*, serving from cache when possible.

        Online: a miss fetches, stores and returns; a hit returns cached
        bytes unless *revalidate* is set, in which case the URL is fetched
        again and the cache overwritten.  Offline: a miss raises
        ``CacheMissError``; *revalidate* is ignored.
        """
        entry = self.lookup(url)

        if self.offline:
            if entry is None:
                raise CacheMissError(f"cache miss while offline: {url}", url=url)
            reason = self.stale_reason(entry)
            if reason:
                logger.warning("[offline] %s", reason)
            return self._read_blob(entry)

        if entry is not None and not revalidate:
            try:
                return self._read_blob(entry)
            except IntegrityError:
                logger.warning("Cached blob for %s is corrupt; refetching", url)

        data = self._download(url)
        if entry is not None and sha256_hex(data) != entry.content_sha256:
            logger.warning(
                "Upstream content changed for %s (was %s, now %s)",
                url, entry.content_sha256[:12], sha256_hex(data)[:12],
            )
        self.store(url, data)
        return data

    def _download(self, url: str) -> bytes:
        if self._fetcher is None:
            raise TransportError(f"no network transport configured for {url}", url=url)
        return self._fetcher.download(url)
