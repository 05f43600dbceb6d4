"""Append-only, hash-chained audit ledger backed by a JSON-lines file.

Design:
- Append-only: only ``record()`` writes; there is no update or delete.
- Hash-chained: each record carries the previous record's hash and is
  sealed with ``sha256(previous_hash || canonical_json(record))``.
- A sidecar head file caches the latest ``record_hash`` so that appends
  can check continuity without reading the whole chain.
- Appends are serialized by an exclusive ``flock`` on a ``.lock`` file
  beside the ledger, so concurrent CLI processes cannot fork the chain.
  Threads in one process also share a lock per ledger path.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from manifestwarden.core.errors import LedgerCorruption
from manifestwarden.core.hasher import canonical_json_bytes, compute_record_hash
from manifestwarden.core.offline_cache import atomic_write_bytes
from manifestwarden.models.ledger import GENESIS_HASH, LedgerRecord

logger = logging.getLogger(__name__)

# Index reported when only the head file (not a specific record) is at fault.
HEAD_INDEX = -1

_TAIL_CHUNK = 4096

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


def _read_last_line(path: Path) -> bytes:
    """Return the final non-empty line of *path* by reading backwards from the end."""
    with path.open("rb") as f:
        f.seek(0, os.SEEK_END)
        end = f.tell()
        buf = b""
        pos = end
        while pos > 0:
            step = min(_TAIL_CHUNK, pos)
            pos -= step
            f.seek(pos)
            buf = f.read(step) + buf
            stripped = buf.rstrip(b"\r\n")
            if b"\n" in stripped:
                return stripped.rsplit(b"\n", 1)[1]
        return buf.rstrip(b"\r\n")


def _parse_record(raw: bytes | str, index: int) -> LedgerRecord:
    try:
        return LedgerRecord.model_validate(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError) as exc:
        raise LedgerCorruption(f"record {index} is not a valid ledger record: {exc}", index=index) from None


class AuditLedger:
    """Append-only audit ledger.

    Parameters
    ----------
    path:
        The JSON-lines ledger file. Created (with its parent) on first append.
    head_path:
        The head file; defaults to *path* with a ``.head`` suffix.
    """

    def __init__(self, path: Path, head_path: Path | None = None) -> None:
        self._path = Path(path)
        self._head_path = Path(head_path) if head_path else self._path.with_suffix(".head")
        self._lock_path = self._path.with_suffix(".lock")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def head_path(self) -> Path:
        return self._head_path

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the writer lock across the head check, append and head write."""
        with _lock_for(self._path):
            self._lock_path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock_path.open("a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    # ------------------------------------------------------------------
    # Head
    # ------------------------------------------------------------------

    def read_head(self) -> str:
        """The cached latest hash, or ``""`` if no head file exists."""
        if not self._head_path.is_file():
            return ""
        return self._head_path.read_text(encoding="ascii").strip()

    def check_head(self) -> str:
        """O(1) continuity check: the last record's hash must equal the head.

        Returns the current chain tip (``GENESIS_HASH`` for an empty ledger).
        This only inspects the final record; rewriting an interior record
        is NOT detected here. Use :meth:`verify` for that.
        """
        head = self.read_head()
        if not self._path.is_file() or self._path.stat().st_size == 0:
            if head and head != GENESIS_HASH:
                raise LedgerCorruption(
                    f"head file {self._head_path} points at {head} but the ledger is empty",
                    index=HEAD_INDEX,
                )
            return GENESIS_HASH

        last = _parse_record(_read_last_line(self._path), HEAD_INDEX)
        if last.record_hash != head:
            raise LedgerCorruption(
                f"head mismatch: last record hash={last.record_hash!r}, head={head!r}",
                index=HEAD_INDEX,
            )
        return head

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def record(
        self,
        action: str,
        component: str = "",
        status: str = "ok",
        duration_ms: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> LedgerRecord:
        """Append a sealed record and advance the head.

        Raises ``LedgerCorruption`` if the head does not match the last
        record; nothing is written in that case.
        """
        with self._exclusive():
            previous = self.check_head()
            draft = LedgerRecord(
                action=action,
                component=component,
                status=status,
                duration_ms=duration_ms,
                extra=extra or {},
                previous_hash=previous,
            )
            sealed = draft.model_copy(
                update={"record_hash": compute_record_hash(previous, draft.hashable_fields())}
            )

            self._path.parent.mkdir(parents=True, exist_ok=True)
            line = canonical_json_bytes(sealed.model_dump(mode="json")) + b"\n"
            with self._path.open("ab") as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
            atomic_write_bytes(self._head_path, sealed.record_hash.encode("ascii"))

        logger.info("Ledger record %s (%s) head=%s", action, status, sealed.record_hash)
        return sealed

    # ------------------------------------------------------------------
    # Read / verify
    # ------------------------------------------------------------------

    def records(self) -> Iterator[LedgerRecord]:
        """Yield every record in append order (parsed, not verified)."""
        if not self._path.is_file():
            return
        with self._path.open("rb") as f:
            for index, line in enumerate(f):
                yield _parse_record(line, index)

    def verify(self) -> int:
        """Walk the full chain from genesis; return the number of records.

        Every record's link and hash are recomputed. The first failure
        raises ``LedgerCorruption`` with that record's 0-based index, and
        the head file must match the final record.
        """
        previous = GENESIS_HASH
        count = 0
        for index, rec in enumerate(self.records()):
            if rec.previous_hash != previous:
                raise LedgerCorruption(
                    f"chain broken at record {index}: expected previous_hash={previous!r}, "
                    f"got {rec.previous_hash!r}",
                    index=index,
                )
            expected = compute_record_hash(previous, rec.hashable_fields())
            if rec.record_hash != expected:
                raise LedgerCorruption(
                    f"tampered record {index}: expected hash={expected!r}, got {rec.record_hash!r}",
                    index=index,
                )
            previous = rec.record_hash
            count += 1

        head = self.read_head()
        if count and head != previous:
            raise LedgerCorruption(
                f"head mismatch after {count} record(s): chain tip={previous!r}, head={head!r}",
                index=HEAD_INDEX,
            )
        if not count and head and head != GENESIS_HASH:
            raise LedgerCorruption(
                f"head file points at {head} but the ledger is empty", index=HEAD_INDEX,
            )
        logger.info("Ledger intact: %d record(s), head=%s", count, previous)
        return count

