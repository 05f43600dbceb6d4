"""Checksum locker — resolves ``TBD`` checksums by downloading and hashing.

The revised manifest is produced by a line-preserving rewrite: every line
is emitted byte-for-byte as read (line endings included) except the
``sha256`` line of each resolved entry, where only the ``TBD`` token is
replaced by the computed digest.  The manifest is never re-serialized, so
diffs stay small and reviewable.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from manifestwarden.core.errors import IntegrityError, TransportError
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.offline_cache import OfflineCache, atomic_write_bytes
from manifestwarden.core.policy import ChecksumPolicy
from manifestwarden.models.manifest import UNRESOLVED_MARKER, Manifest
from manifestwarden.models.reports import LockOutcome, LockPlan, LockStatus

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(rf"\b{UNRESOLVED_MARKER}\b")
_EMPTY_SHA_RE = re.compile(r"^(\s*(?:-\s+)?sha256:)\s*$")


def _split_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def replace_marker(line: str, digest: str) -> str:
    """Swap the unresolved marker on a ``sha256:`` line for *digest*."""
    body, ending = _split_ending(line)
    if _MARKER_RE.search(body):
        return _MARKER_RE.sub(digest, body, count=1) + ending
    empty = _EMPTY_SHA_RE.match(body)
    if empty:
        return f"{empty.group(1)} {digest}{ending}"
    raise ValueError(f"no unresolved sha256 value on line: {line!r}")


class ChecksumLocker:
    """Resolves unresolved archive and source checksums.

    Parameters
    ----------
    manifest:
        The parsed manifest (supplies entries and their sha256 line numbers).
    cache:
        Offline cache used for downloads.
    name_filter:
        Optional substring; only matching entries are resolved.
    policy:
        Supplies the package-manager types whose sources are skipped.
    """

    def __init__(
        self,
        manifest: Manifest,
        cache: OfflineCache,
        *,
        name_filter: str | None = None,
        policy: ChecksumPolicy | None = None,
    ) -> None:
        self._manifest = manifest
        self._cache = cache
        self._filter = name_filter or ""
        self._policy = policy or ChecksumPolicy()

    def _candidates(self) -> list[tuple[str, str, str, int | None, str]]:
        """(section, name, url, sha256 line, source type) for every TBD entry."""
        found: list[tuple[str, str, str, int | None, str]] = []
        for a in self._manifest.archives:
            if a.is_unresolved:
                found.append(("archives", a.name, a.url, a.line_numbers.get("sha256"), ""))
        for s in self._manifest.sources:
            if s.is_unresolved:
                found.append(("sources", s.name, s.url, s.line_numbers.get("sha256"), s.type))
        return found

    def resolve(self) -> list[LockOutcome]:
        """Download and hash every unresolved entry; failures are reported, not raised."""
        outcomes: list[LockOutcome] = []
        for section, name, url, line_number, source_type in self._candidates():
            common = dict(section=section, name=name, url=url, line_number=line_number)
            if self._filter and self._filter not in name:
                outcomes.append(LockOutcome(**common, status=LockStatus.SKIPPED, detail="filtered"))
                continue
            if source_type and self._policy.is_package_manager(source_type):
                outcomes.append(LockOutcome(
                    **common, status=LockStatus.SKIPPED,
                    detail=f"{source_type} source verified by its package manager",
                ))
                continue
            if line_number is None:
                outcomes.append(LockOutcome(
                    **common, status=LockStatus.SKIPPED, detail="no sha256 line to rewrite",
                ))
                continue

            logger.info("Locking %s from %s", name, url)
            try:
                data = self._cache.fetch_with_cache(url)
            except (TransportError, IntegrityError) as exc:
                logger.warning("Download failed for %s: %s", name, exc)
                outcomes.append(LockOutcome(**common, status=LockStatus.FAILED, detail=str(exc)))
                continue
            outcomes.append(LockOutcome(
                **common, status=LockStatus.LOCKED, sha256=sha256_hex(data), size=len(data),
            ))
        return outcomes

    @staticmethod
    def render(original_text: str, outcomes: list[LockOutcome]) -> str:
        """Apply locked digests to *original_text*, leaving every other line untouched."""
        replacements = {
            o.line_number: o.sha256
            for o in outcomes
            if o.status == LockStatus.LOCKED and o.line_number is not None
        }
        lines = original_text.splitlines(keepends=True)
        for line_number, digest in replacements.items():
            lines[line_number - 1] = replace_marker(lines[line_number - 1], digest)
        return "".join(lines)

    def plan(self, original_text: str) -> LockPlan:
        outcomes = self.resolve()
        return LockPlan(outcomes=tuple(outcomes), revised_text=self.render(original_text, outcomes))

    @staticmethod
    def write(path: Path, plan: LockPlan) -> None:
        """Rewrite the manifest at *path* in place (atomically)."""
        atomic_write_bytes(Path(path), plan.revised_text.encode("utf-8"))
        logger.info("Updated %s (%d checksum(s) locked)", path, len(plan.locked))
