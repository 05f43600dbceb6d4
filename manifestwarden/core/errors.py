"""Failure taxonomy and the process exit codes each failure maps to.

Exit codes are the primary machine contract:

====  ==========================================
0     success
1     warnings only / drift detected
2     hard failure (integrity, transport, trust, ledger corruption)
3     configuration or parse error
4     policy violation (strict mode, unset pins)
====  ==========================================

Per-artifact and per-key failures are recovered locally and aggregated by
their components.  ``LedgerCorruption`` is the exception: it must halt the
caller immediately.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from manifestwarden.models.reports import (
        DriftReport,
        KeyOutcome,
        PolicyFinding,
        VerificationResult,
    )


class ExitCode(IntEnum):
    OK = 0
    WARNINGS = 1
    FAILURE = 2
    CONFIG_ERROR = 3
    POLICY_VIOLATION = 4


class WardenError(RuntimeError):
    """Base class for every failure this package raises on purpose."""

    exit_code: ExitCode = ExitCode.FAILURE


class ParseError(WardenError):
    """Malformed manifest section or entry (or a missing manifest/baseline)."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class PolicyViolation(WardenError):
    """Required checksums are missing while strict mode is on."""

    exit_code = ExitCode.POLICY_VIOLATION

    def __init__(self, findings: list[PolicyFinding]) -> None:
        listed = "; ".join(f"{f.section}/{f.name}: {f.field} {f.reason}" for f in findings)
        super().__init__(f"{len(findings)} checksum policy violation(s): {listed}")
        self.findings = findings


class TransportError(WardenError):
    """A probe or download failed, including timeouts."""

    def __init__(self, message: str, *, url: str = "", timed_out: bool = False) -> None:
        super().__init__(message)
        self.url = url
        self.timed_out = timed_out


class CacheMissError(TransportError):
    """Offline mode is on and the requested URL was never cached."""


class IntegrityError(WardenError):
    """Downloaded content disagrees with the manifest (hash, size, or HTML page)."""

    def __init__(self, message: str, *, result: VerificationResult) -> None:
        super().__init__(message)
        self.result = result


class TrustError(WardenError):
    """A GPG key may not be trusted: mismatched, unpinned, or unverifiable."""

    def __init__(self, message: str, *, name: str, outcome: KeyOutcome) -> None:
        super().__init__(message)
        self.name = name
        self.outcome = outcome


class DriftDetected(WardenError):
    """The live manifest differs from the recorded baseline."""

    exit_code = ExitCode.WARNINGS

    def __init__(self, report: DriftReport) -> None:
        super().__init__(f"Drift detected: {len(report.events)} event(s)")
        self.report = report


class LedgerCorruption(WardenError):
    """The audit ledger's hash chain is broken. Fatal."""

    def __init__(self, message: str, *, index: int) -> None:
        super().__init__(message)
        self.index = index
