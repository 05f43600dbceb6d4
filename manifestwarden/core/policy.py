"""Checksum policy enforcer — presence and shape of checksums per entry type.

Rule table
----------
- Every archive requires a concrete 64-hex ``sha256`` and a concrete
  ``content_length``.  The all-zero placeholder is an explicit exemption
  and counts as concrete.
- Every source requires a concrete ``sha256`` unless its ``type`` is a
  package-manager tag (``pypi``, ``npm``, ...).  Those are informational
  only; the package manager verifies integrity itself.

Report mode lists violations and succeeds.  Strict mode raises
``PolicyViolation`` naming every offending entry by section and name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from manifestwarden.core.errors import PolicyViolation
from manifestwarden.models.manifest import (
    Manifest,
    is_concrete_sha256,
    is_unresolved,
)
from manifestwarden.models.reports import (
    PolicyEntryState,
    PolicyFinding,
    PolicyReport,
)

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_MANAGER_TYPES: frozenset[str] = frozenset({"pypi", "npm"})


def _sha_reason(value: str) -> str | None:
    if is_unresolved(value):
        return "missing"
    if not is_concrete_sha256(value):
        return "malformed"
    return None


class ChecksumPolicy:
    """Evaluates the manifest against the checksum rule table.

    Parameters
    ----------
    package_manager_types:
        Source ``type`` tags that are exempt from the checksum requirement.
    """

    def __init__(self, package_manager_types: Iterable[str] | None = None) -> None:
        types = DEFAULT_PACKAGE_MANAGER_TYPES if package_manager_types is None else package_manager_types
        self._pm_types = frozenset(t.lower() for t in types)

    def is_package_manager(self, source_type: str) -> bool:
        return source_type.lower() in self._pm_types

    def check(self, manifest: Manifest) -> PolicyReport:
        """Evaluate every archive and source; never raises."""
        findings: list[PolicyFinding] = []
        entries: list[PolicyEntryState] = []

        for archive in manifest.archives:
            entry_findings: list[PolicyFinding] = []
            reason = _sha_reason(archive.sha256)
            if reason:
                entry_findings.append(PolicyFinding(
                    section="archives", name=archive.name, field="sha256", reason=reason,
                ))
            if archive.content_length is None:
                entry_findings.append(PolicyFinding(
                    section="archives", name=archive.name,
                    field="content_length", reason="missing",
                ))
            findings.extend(entry_findings)
            entries.append(PolicyEntryState(
                section="archives", name=archive.name,
                state=entry_findings[0].reason if entry_findings else "ok",
            ))

        for source in manifest.sources:
            if self.is_package_manager(source.type):
                entries.append(PolicyEntryState(
                    section="sources", name=source.name, state="exempt",
                ))
                continue
            reason = _sha_reason(source.sha256)
            if reason:
                findings.append(PolicyFinding(
                    section="sources", name=source.name, field="sha256", reason=reason,
                ))
            entries.append(PolicyEntryState(
                section="sources", name=source.name, state=reason or "ok",
            ))

        return PolicyReport(findings=tuple(findings), entries=tuple(entries))

    def enforce(self, manifest: Manifest, *, strict: bool = False) -> PolicyReport:
        """Check the manifest; raise ``PolicyViolation`` in strict mode if anything fails."""
        report = self.check(manifest)
        for finding in report.findings:
            logger.warning(
                "Checksum policy: %s/%s %s %s",
                finding.section, finding.name, finding.field, finding.reason,
            )
        if strict and report.findings:
            raise PolicyViolation(list(report.findings))
        logger.info(
            "Checksum policy: %d violation(s), %d missing, strict=%s",
            len(report.findings), report.missing, strict,
        )
        return report
