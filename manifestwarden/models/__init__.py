"""manifestwarden data models — all Pydantic v2, all frozen (immutable)."""

from manifestwarden.models.baseline import BaselineEntry, BaselineSnapshot
from manifestwarden.models.cache import CacheEntry
from manifestwarden.models.context import RunContext
from manifestwarden.models.ledger import GENESIS_HASH, LedgerRecord
from manifestwarden.models.manifest import (
    EXEMPT_SHA256,
    UNRESOLVED_MARKER,
    ArchiveEntry,
    GPGKeyEntry,
    KeyStatus,
    Manifest,
    SourceEntry,
)
from manifestwarden.models.reports import (
    ArtifactReport,
    DriftEvent,
    DriftKind,
    DriftReport,
    KeyCheck,
    KeyOutcome,
    LockOutcome,
    LockPlan,
    LockStatus,
    PolicyFinding,
    PolicyReport,
    VerificationResult,
    VerificationSummary,
    VerifyMode,
)

__all__ = [
    # manifest
    "ArchiveEntry",
    "SourceEntry",
    "GPGKeyEntry",
    "KeyStatus",
    "Manifest",
    "UNRESOLVED_MARKER",
    "EXEMPT_SHA256",
    # baseline
    "BaselineEntry",
    "BaselineSnapshot",
    # cache
    "CacheEntry",
    # context
    "RunContext",
    # ledger
    "GENESIS_HASH",
    "LedgerRecord",
    # reports
    "VerificationResult",
    "VerifyMode",
    "ArtifactReport",
    "VerificationSummary",
    "KeyOutcome",
    "KeyCheck",
    "PolicyFinding",
    "PolicyReport",
    "DriftKind",
    "DriftEvent",
    "DriftReport",
    "LockStatus",
    "LockOutcome",
    "LockPlan",
]
