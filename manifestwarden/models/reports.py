"""Outcome models produced by the verification, trust, policy and drift components.

Every component returns one of these frozen reports; the CLI renders them
and turns them into exit codes and JSON summaries.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Archive verification
# ---------------------------------------------------------------------------


class VerificationResult(str, Enum):
    """Per-artifact verdict of one verification run."""

    OK = "ok"
    SIZE_MISMATCH = "size_mismatch"
    HASH_MISMATCH = "hash_mismatch"
    HTML_ERROR = "html_error"
    DOWNLOAD_FAIL = "download_fail"
    SKIPPED = "skipped"

    @property
    def is_failure(self) -> bool:
        return self in HARD_FAILURES


HARD_FAILURES: frozenset[VerificationResult] = frozenset({
    VerificationResult.SIZE_MISMATCH,
    VerificationResult.HASH_MISMATCH,
    VerificationResult.HTML_ERROR,
    VerificationResult.DOWNLOAD_FAIL,
})


class VerifyMode(str, Enum):
    QUICK = "quick"
    FULL = "full"


class ArtifactReport(BaseModel):
    """Outcome for a single archive entry."""

    model_config = ConfigDict(frozen=True)

    name: str
    result: VerificationResult
    detail: str = ""
    expected_sha256: str = ""
    actual_sha256: str = ""
    expected_length: int | None = None
    actual_length: int | None = None
    timed_out: bool = False
    warnings: tuple[str, ...] = ()


class VerificationSummary(BaseModel):
    """Aggregate of a verification run, built only after all workers finish."""

    model_config = ConfigDict(frozen=True)

    mode: VerifyMode
    duration_ms: int = 0
    artifacts: tuple[ArtifactReport, ...] = ()
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.artifacts)

    @property
    def failures(self) -> int:
        return sum(1 for a in self.artifacts if a.result.is_failure)

    @property
    def warnings(self) -> int:
        return sum(len(a.warnings) for a in self.artifacts)

    def exit_code(self, *, allow_warn: bool = False) -> int:
        """0 all ok, 1 warnings only (unless allowed), 2 any hard failure.

        A cancelled run left artifacts unchecked and exits 2 as well.
        """
        if self.failures or self.cancelled:
            return 2
        if self.warnings and not allow_warn:
            return 1
        return 0

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "failures": self.failures,
            "warnings": self.warnings,
            "duration_ms": self.duration_ms,
            "count": self.count,
            "cancelled": self.cancelled,
            "artifacts": [
                {"name": a.name, "result": a.result.value, "detail": a.detail}
                for a in self.artifacts
            ],
        }


class LengthProbe(BaseModel):
    """Remote Content-Length observed for one archive."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    content_length: int | None = None
    error: str = ""


# ---------------------------------------------------------------------------
# GPG trust
# ---------------------------------------------------------------------------


class KeyOutcome(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    PLACEHOLDER = "placeholder"
    ERROR = "error"
    SKIPPED = "skipped"


class KeyCheck(BaseModel):
    """Result of validating one pinned GPG key."""

    model_config = ConfigDict(frozen=True)

    name: str
    outcome: KeyOutcome
    expected: str = ""
    actual: str = ""
    detail: str = ""

    def to_json_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "status": self.outcome.value}
        if self.outcome == KeyOutcome.MATCH:
            data["fingerprint"] = self.actual
        elif self.outcome == KeyOutcome.MISMATCH:
            data["expected"] = self.expected
            data["actual"] = self.actual
        elif self.detail:
            data["detail"] = self.detail
        return data


def key_checks_exit_code(checks: list[KeyCheck]) -> int:
    """2 on any mismatch/error, 4 when only placeholders remain, else 0."""
    outcomes = {c.outcome for c in checks}
    if outcomes & {KeyOutcome.MISMATCH, KeyOutcome.ERROR}:
        return 2
    if KeyOutcome.PLACEHOLDER in outcomes:
        return 4
    return 0


# ---------------------------------------------------------------------------
# Checksum policy
# ---------------------------------------------------------------------------


class PolicyFinding(BaseModel):
    """A single rule violation: which entry, which field, and why."""

    model_config = ConfigDict(frozen=True)

    section: str  # "archives" | "sources"
    name: str
    field: str  # "sha256" | "content_length"
    reason: str  # "missing" | "malformed"


class PolicyEntryState(BaseModel):
    model_config = ConfigDict(frozen=True)

    section: str
    name: str
    state: str  # "ok" | "missing" | "malformed" | "exempt"


class PolicyReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    findings: tuple[PolicyFinding, ...] = ()
    entries: tuple[PolicyEntryState, ...] = ()

    @property
    def missing(self) -> int:
        return sum(1 for f in self.findings if f.reason == "missing")

    @property
    def passed(self) -> bool:
        return not self.findings

    def to_json_dict(self, *, strict: bool = False) -> dict[str, Any]:
        return {
            "status": "fail" if strict and self.findings else "pass",
            "missing": self.missing,
            "violations": [f.model_dump() for f in self.findings],
            "entries": [e.model_dump() for e in self.entries],
        }


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------


class DriftKind(str, Enum):
    NEW_IN_MANIFEST = "new_in_manifest"
    MISSING_IN_MANIFEST = "missing_in_manifest"
    HASH_CHANGE = "hash_change"
    SIZE_CHANGE = "size_change"


class DriftEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: DriftKind
    name: str
    baseline: str | int | None = None
    current: str | int | None = None


class DriftReport(BaseModel):
    """Itemized drift between a baseline snapshot and the live manifest."""

    model_config = ConfigDict(frozen=True)

    events: tuple[DriftEvent, ...] = ()

    @property
    def drift(self) -> bool:
        return bool(self.events)

    def of_kind(self, kind: DriftKind) -> list[DriftEvent]:
        return [e for e in self.events if e.kind == kind]

    def counts(self) -> dict[str, int]:
        return {kind.value: len(self.of_kind(kind)) for kind in DriftKind}

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "drift": self.drift,
            "count": len(self.events),
            "counts": self.counts(),
            "events": [e.model_dump(mode="json") for e in self.events],
        }


# ---------------------------------------------------------------------------
# Checksum locking
# ---------------------------------------------------------------------------


class LockStatus(str, Enum):
    LOCKED = "locked"
    FAILED = "failed"
    SKIPPED = "skipped"


class LockOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    section: str
    name: str
    url: str
    status: LockStatus
    sha256: str = ""
    size: int | None = None
    line_number: int | None = None
    detail: str = ""


class LockPlan(BaseModel):
    """Resolved checksums plus the revised manifest text."""

    model_config = ConfigDict(frozen=True)

    outcomes: tuple[LockOutcome, ...] = ()
    revised_text: str = Field(default="", repr=False)

    @property
    def locked(self) -> list[LockOutcome]:
        return [o for o in self.outcomes if o.status == LockStatus.LOCKED]

    @property
    def failed(self) -> list[LockOutcome]:
        return [o for o in self.outcomes if o.status == LockStatus.FAILED]
