"""Archive verifier — quick (metadata-only) and full (download + hash) checks.

Quick mode
    Probes each archive's declared remote length and compares it with the
    manifest's ``content_length``.  Nothing is downloaded.

Full mode
    Downloads through the offline cache, then in order:

    1. sniffs the first 256 bytes for markup (a redirected error or landing
       page) -> ``html_error``
    2. compares the exact byte count -> ``size_mismatch``
    3. compares the SHA-256, unless the manifest holds the all-zero
       placeholder -> ``hash_mismatch``

Checks run on a bounded thread pool.  Each artifact is independent: a
failure on one never stops the others, and results are aggregated only
after every worker finishes.  A cancel event stops new checks from
starting; in-flight checks finish and are still reported.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from manifestwarden.core.errors import IntegrityError, TransportError
from manifestwarden.core.fetcher import HttpFetcher
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.offline_cache import OfflineCache
from manifestwarden.core.policy import ChecksumPolicy
from manifestwarden.models.baseline import BaselineSnapshot
from manifestwarden.models.context import RunContext
from manifestwarden.models.manifest import ArchiveEntry, Manifest
from manifestwarden.models.reports import (
    ArtifactReport,
    LengthProbe,
    VerificationResult,
    VerificationSummary,
    VerifyMode,
)

logger = logging.getLogger(__name__)

SNIFF_BYTES = 256
HTML_SIGNATURES: tuple[bytes, ...] = (b"<html", b"<!doctype html", b"<head", b"<body")
DEFAULT_META_PATTERNS: tuple[str, ...] = ("eclipse-release-*",)
DEFAULT_CONCURRENCY = 4


def looks_like_html(data: bytes) -> bool:
    """True if the leading bytes carry a markup signature."""
    head = data[:SNIFF_BYTES].lower()
    return any(sig in head for sig in HTML_SIGNATURES)


def check_payload(entry: ArchiveEntry, data: bytes) -> str:
    """Check downloaded *data* against *entry*; return its SHA-256.

    Raises ``IntegrityError`` carrying the failing ``VerificationResult``.
    Only the all-zero placeholder is exempt from the hash compare; an
    unresolved ``TBD`` checksum never matches.
    """
    if looks_like_html(data):
        raise IntegrityError(
            f"{entry.name}: markup detected in first {SNIFF_BYTES} bytes (probable error page)",
            result=VerificationResult.HTML_ERROR,
        )
    if entry.content_length is not None and len(data) != entry.content_length:
        raise IntegrityError(
            f"{entry.name}: manifest={entry.content_length} downloaded={len(data)}",
            result=VerificationResult.SIZE_MISMATCH,
        )
    actual = sha256_hex(data)
    if entry.is_exempt:
        return actual
    if entry.is_unresolved:
        raise IntegrityError(
            f"{entry.name}: checksum unresolved (TBD); got={actual}",
            result=VerificationResult.HASH_MISMATCH,
        )
    if actual != entry.sha256.lower():
        raise IntegrityError(
            f"{entry.name}: expected={entry.sha256} got={actual}",
            result=VerificationResult.HASH_MISMATCH,
        )
    return actual


def _size_drift_pct(observed: int, recorded: int) -> float:
    if recorded == 0:
        return 0.0 if observed == 0 else 100.0
    return abs(observed - recorded) * 100.0 / recorded


class ArchiveVerifier:
    """Verifies the manifest's archives in quick or full mode.

    Parameters
    ----------
    manifest:
        The parsed manifest.
    cache:
        Offline cache used for full-mode downloads.
    fetcher:
        Transport for quick-mode probes.  Unused while offline.
    context:
        Run context (offline and strict flags).
    concurrency:
        Maximum number of artifacts checked at once.
    name_filter:
        Optional substring; only archives whose name contains it are checked.
    meta_patterns:
        Glob patterns of meta/release-marker entries that are always skipped.
    size_warn_pct:
        With a *baseline*, warn when an observed size differs from the
        baseline's by more than this percentage.
    baseline:
        Snapshot used for the size-drift warning.
    policy:
        Checksum policy enforced up-front in strict mode.
    """

    def __init__(
        self,
        manifest: Manifest,
        cache: OfflineCache,
        *,
        fetcher: HttpFetcher | None = None,
        context: RunContext | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        name_filter: str | None = None,
        meta_patterns: Iterable[str] = DEFAULT_META_PATTERNS,
        size_warn_pct: float | None = None,
        baseline: BaselineSnapshot | None = None,
        policy: ChecksumPolicy | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._manifest = manifest
        self._cache = cache
        self._fetcher = fetcher
        self._context = context or RunContext()
        self._concurrency = concurrency
        self._filter = name_filter or ""
        self._meta_patterns = tuple(meta_patterns)
        self._size_warn_pct = size_warn_pct
        self._baseline = baseline.by_name() if baseline else {}
        self._policy = policy or ChecksumPolicy()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def is_meta(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, p) for p in self._meta_patterns)

    def selected(self) -> list[ArchiveEntry]:
        """Archives passing the name filter (meta entries included)."""
        return [a for a in self._manifest.archives if self._filter in a.name]

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def verify(
        self,
        mode: VerifyMode = VerifyMode.FULL,
        *,
        refresh: bool = False,
        cancel: threading.Event | None = None,
    ) -> VerificationSummary:
        """Verify every selected archive and aggregate the results.

        In strict mode the checksum policy is enforced first; a violation
        raises ``PolicyViolation`` before any network work starts.

        Setting *cancel* (or an interrupt while waiting) stops checks that
        have not started yet; those report ``skipped`` with detail
        ``cancelled``, and in-flight checks still contribute their results.
        """
        entries = self.selected()
        if self._context.strict:
            scoped = self._manifest.model_copy(update={"archives": tuple(entries), "sources": ()})
            self._policy.enforce(scoped, strict=True)

        cancel = cancel or threading.Event()
        started = time.monotonic()
        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="verify"
        ) as pool:
            futures = [
                pool.submit(self._verify_one, entry, mode, refresh, cancel)
                for entry in entries
            ]
            try:
                for future in futures:
                    future.exception()
            except KeyboardInterrupt:
                logger.warning("Interrupted: letting in-flight checks finish, skipping the rest")
                cancel.set()
            reports = [f.result() for f in futures]
        duration_ms = int((time.monotonic() - started) * 1000)

        summary = VerificationSummary(
            mode=mode,
            duration_ms=duration_ms,
            artifacts=tuple(reports),
            cancelled=cancel.is_set(),
        )
        logger.info(
            "Verification (%s): %d artifact(s), %d failure(s), %d warning(s) in %d ms",
            mode.value, summary.count, summary.failures, summary.warnings, duration_ms,
        )
        return summary

    def _verify_one(
        self,
        entry: ArchiveEntry,
        mode: VerifyMode,
        refresh: bool,
        cancel: threading.Event,
    ) -> ArtifactReport:
        if self.is_meta(entry.name):
            logger.info("SKIP meta/release marker %s", entry.name)
            return ArtifactReport(name=entry.name, result=VerificationResult.SKIPPED, detail="meta entry")
        if cancel.is_set():
            return ArtifactReport(name=entry.name, result=VerificationResult.SKIPPED, detail="cancelled")

        try:
            if mode == VerifyMode.QUICK:
                report = self._quick(entry)
            else:
                report = self._full(entry, refresh)
        except TransportError as exc:
            logger.error("DOWNLOAD-FAIL %s: %s", entry.name, exc)
            report = ArtifactReport(
                name=entry.name,
                result=VerificationResult.DOWNLOAD_FAIL,
                detail=str(exc),
                expected_sha256=entry.sha256,
                expected_length=entry.content_length,
                timed_out=exc.timed_out,
            )
        except IntegrityError as exc:
            # offline read of a cached blob that no longer matches its sidecar
            logger.error("%s %s", exc.result.value.upper(), exc)
            report = ArtifactReport(
                name=entry.name,
                result=exc.result,
                detail=str(exc),
                expected_sha256=entry.sha256,
                expected_length=entry.content_length,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error verifying %s", entry.name)
            report = ArtifactReport(
                name=entry.name,
                result=VerificationResult.DOWNLOAD_FAIL,
                detail=f"unexpected error: {exc}",
            )
        return report

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _remote_length(self, entry: ArchiveEntry) -> int | None:
        if self._context.offline:
            cached = self._cache.lookup(entry.url)
            if cached is None:
                raise TransportError(
                    f"cache miss while offline: {entry.url}", url=entry.url
                )
            return cached.size
        if self._fetcher is None:
            raise TransportError(f"no network transport configured for {entry.url}", url=entry.url)
        return self._fetcher.probe_length(entry.url)

    def _quick(self, entry: ArchiveEntry) -> ArtifactReport:
        warnings: list[str] = []
        remote = self._remote_length(entry)
        base = dict(
            name=entry.name,
            expected_sha256=entry.sha256,
            expected_length=entry.content_length,
            actual_length=remote,
        )
        if entry.content_length is None:
            warnings.append("manifest has no content_length; size not checked")
        if remote is None:
            warnings.append("remote did not declare a Content-Length")
        if entry.content_length is not None and remote is not None and remote != entry.content_length:
            logger.error("SIZE-MISMATCH %s manifest=%s remote=%s", entry.name, entry.content_length, remote)
            return ArtifactReport(
                **base,
                result=VerificationResult.SIZE_MISMATCH,
                detail=f"manifest={entry.content_length} remote={remote}",
                warnings=tuple(warnings),
            )
        warnings.extend(self._baseline_warnings(entry.name, remote))
        logger.info("OK %s (quick)", entry.name)
        return ArtifactReport(**base, result=VerificationResult.OK, warnings=tuple(warnings))

    def _full(self, entry: ArchiveEntry, refresh: bool) -> ArtifactReport:
        warnings: list[str] = []
        if self._context.offline:
            cached = self._cache.lookup(entry.url)
            stale = self._cache.stale_reason(cached) if cached else None
            if stale:
                warnings.append(stale)

        data = self._cache.fetch_with_cache(entry.url, revalidate=refresh)
        base = dict(
            name=entry.name,
            expected_sha256=entry.sha256,
            expected_length=entry.content_length,
            actual_length=len(data),
        )
        try:
            actual = check_payload(entry, data)
        except IntegrityError as exc:
            logger.error("%s %s", exc.result.value.upper(), exc)
            return ArtifactReport(
                **base,
                result=exc.result,
                detail=str(exc),
                actual_sha256=sha256_hex(data),
                warnings=tuple(warnings),
            )

        if entry.content_length is None:
            warnings.append("manifest has no content_length; size not checked")
        if entry.is_exempt:
            logger.info("SKIP-HASH meta/placeholder %s", entry.name)
        warnings.extend(self._baseline_warnings(entry.name, len(data)))
        logger.info("OK %s", entry.name)
        return ArtifactReport(
            **base, result=VerificationResult.OK, actual_sha256=actual, warnings=tuple(warnings),
        )

    def _baseline_warnings(self, name: str, observed: int | None) -> list[str]:
        if self._size_warn_pct is None or observed is None:
            return []
        recorded = self._baseline.get(name)
        if recorded is None or recorded.content_length is None:
            return []
        drift = _size_drift_pct(observed, recorded.content_length)
        if drift > self._size_warn_pct:
            return [
                f"size drifted {drift:.1f}% from baseline "
                f"({recorded.content_length} -> {observed}), threshold {self._size_warn_pct}%"
            ]
        return []

    # ------------------------------------------------------------------
    # Content-length collection
    # ------------------------------------------------------------------

    def collect_lengths(self) -> list[LengthProbe]:
        """Probe the remote Content-Length of every selected, non-meta archive."""
        entries = [e for e in self.selected() if not self.is_meta(e.name)]

        def probe(entry: ArchiveEntry) -> LengthProbe:
            try:
                length = self._remote_length(entry)
            except TransportError as exc:
                return LengthProbe(name=entry.name, url=entry.url, error=str(exc))
            return LengthProbe(name=entry.name, url=entry.url, content_length=length)

        with ThreadPoolExecutor(max_workers=self._concurrency, thread_name_prefix="probe") as pool:
            return list(pool.map(probe, entries))
