"""Audit ledger record model (append-only, hash-chained).

``record_hash = sha256(previous_hash || canonical_json(record minus record_hash))``.
The first record links to ``GENESIS_HASH``.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

GENESIS_HASH = "0" * 64


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class LedgerRecord(BaseModel):
    """A single line of the audit ledger."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ts: str = Field(default_factory=_utc_now)
    pid: int = Field(default_factory=os.getpid)
    action: str
    component: str = ""
    status: str = "ok"
    duration_ms: int | None = None
    extra: dict[str, Any] = {}
    previous_hash: str = GENESIS_HASH
    record_hash: str = ""  # computed on append, seals this record

    def hashable_fields(self) -> dict[str, Any]:
        """Every field except ``record_hash``, JSON-ready."""
        return self.model_dump(mode="json", exclude={"record_hash"})
