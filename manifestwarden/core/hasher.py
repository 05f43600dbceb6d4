"""Canonical hashing helpers for the ledger, the cache and artifact checks.

Canonical JSON is sorted, compact and ASCII-only so that the same record
always hashes to the same digest regardless of dict ordering.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

_CHUNK = 1024 * 1024


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Stream a file through SHA-256 without loading it whole."""
    h = hashlib.sha256()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def url_cache_key(url: str) -> str:
    """Cache key for a request URL: the SHA-256 of the URL itself, not its body."""
    return sha256_hex(url.encode("utf-8"))


def compute_record_hash(previous_hash: str, fields: dict[str, Any]) -> str:
    """Seal a ledger record: ``sha256(previous_hash || canonical_json(fields))``.

    *fields* must not contain ``record_hash``; it is the value being computed.
    """
    d = {k: v for k, v in fields.items() if k != "record_hash"}
    return sha256_hex(previous_hash.encode("ascii") + canonical_json_bytes(d))
