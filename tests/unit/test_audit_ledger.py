"""Unit tests for the hash-chained audit ledger."""

from __future__ import annotations

import json
import subprocess
import sys
import threading
from pathlib import Path

import pytest

from manifestwarden.core.audit_ledger import HEAD_INDEX, AuditLedger
from manifestwarden.core.errors import ExitCode, LedgerCorruption
from manifestwarden.core.hasher import compute_record_hash
from manifestwarden.models.ledger import GENESIS_HASH

# Appends records from a separate interpreter: argv = ledger path, count, component.
_APPEND_SCRIPT = """
import sys
from pathlib import Path

from manifestwarden.core.audit_ledger import AuditLedger

ledger = AuditLedger(Path(sys.argv[1]))
for i in range(int(sys.argv[2])):
    ledger.record("concurrent", component=sys.argv[3], extra={"i": i})
"""


class TestAppend:
    def test_first_record_links_to_genesis(self, ledger: AuditLedger):
        rec = ledger.record("verify", component="archives")
        assert rec.previous_hash == GENESIS_HASH
        assert rec.record_hash == compute_record_hash(GENESIS_HASH, rec.hashable_fields())
        assert ledger.read_head() == rec.record_hash

    def test_chain_links(self, ledger: AuditLedger):
        first = ledger.record("baseline")
        second = ledger.record("drift", status="warn", duration_ms=12, extra={"events": 1})
        assert second.previous_hash == first.record_hash
        assert ledger.read_head() == second.record_hash

    def test_one_line_per_record(self, ledger: AuditLedger):
        ledger.record("a")
        ledger.record("b")
        lines = ledger.path.read_text().splitlines()
        assert [json.loads(line)["action"] for line in lines] == ["a", "b"]

    def test_head_defaults_beside_ledger(self, tmp_path: Path):
        ledger = AuditLedger(tmp_path / "ledger.jsonl")
        assert ledger.head_path == tmp_path / "ledger.head"

    def test_custom_head_path(self, tmp_path: Path):
        head = tmp_path / "elsewhere" / "tip"
        ledger = AuditLedger(tmp_path / "ledger.jsonl", head_path=head)
        rec = ledger.record("x")
        assert head.read_text() == rec.record_hash

    def test_records_are_frozen(self, ledger: AuditLedger):
        rec = ledger.record("x")
        with pytest.raises(Exception):
            rec.action = "y"  # type: ignore[misc]


class TestVerify:
    def test_empty_ledger(self, ledger: AuditLedger):
        assert ledger.verify() == 0
        assert ledger.check_head() == GENESIS_HASH

    def test_intact_chain(self, ledger: AuditLedger):
        for i in range(5):
            ledger.record(f"step-{i}")
        assert ledger.verify() == 5

    def test_records_iterates_in_order(self, ledger: AuditLedger):
        for name in ("one", "two", "three"):
            ledger.record(name)
        assert [r.action for r in ledger.records()] == ["one", "two", "three"]


class TestHeadChecks:
    def test_head_mismatch_blocks_append(self, ledger: AuditLedger):
        ledger.record("a")
        ledger.head_path.write_text("f" * 64)
        size = ledger.path.stat().st_size
        with pytest.raises(LedgerCorruption) as exc_info:
            ledger.record("b")
        assert exc_info.value.index == HEAD_INDEX
        assert exc_info.value.exit_code == ExitCode.FAILURE
        assert ledger.path.stat().st_size == size

    def test_missing_head_with_records(self, ledger: AuditLedger):
        ledger.record("a")
        ledger.head_path.unlink()
        with pytest.raises(LedgerCorruption):
            ledger.check_head()

    def test_head_without_ledger(self, ledger: AuditLedger):
        ledger.head_path.parent.mkdir(parents=True, exist_ok=True)
        ledger.head_path.write_text("a" * 64)
        with pytest.raises(LedgerCorruption):
            ledger.check_head()
        with pytest.raises(LedgerCorruption):
            ledger.verify()


class TestConcurrency:
    def test_threads_append_without_forking(self, ledger: AuditLedger):
        errors: list[BaseException] = []

        def worker(n: int) -> None:
            try:
                for i in range(10):
                    ledger.record("concurrent", extra={"worker": n, "i": i})
            except BaseException as exc:  # surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert ledger.verify() == 40

    def test_two_handles_share_lock(self, tmp_path: Path):
        path = tmp_path / "ledger.jsonl"
        a, b = AuditLedger(path), AuditLedger(path)
        a.record("from-a")
        b.record("from-b")
        assert a.verify() == 2

    def test_processes_append_without_forking(self, tmp_path: Path):
        path = tmp_path / "state" / "ledger.jsonl"
        procs = [
            subprocess.Popen(
                [sys.executable, "-c", _APPEND_SCRIPT, str(path), "25", f"proc-{n}"],
                cwd=Path(__file__).resolve().parents[2],
                stderr=subprocess.PIPE,
            )
            for n in range(4)
        ]
        for proc in procs:
            _, stderr = proc.communicate(timeout=120)
            assert proc.returncode == 0, stderr.decode()

        ledger = AuditLedger(path)
        assert ledger.verify() == 100
        components = [r.component for r in ledger.records()]
        assert {components.count(f"proc-{n}") for n in range(4)} == {25}
        assert ledger.lock_path == tmp_path / "state" / "ledger.lock"
