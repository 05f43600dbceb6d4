"""Unit tests for drift detection between a baseline and the manifest."""

from __future__ import annotations

import pytest

from conftest import ALPHA_BYTES, render_manifest
from manifestwarden.core.baseline import generate_baseline
from manifestwarden.core.drift_detector import DriftDetector
from manifestwarden.core.errors import DriftDetected, ExitCode
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.manifest_store import parse_manifest
from manifestwarden.models.baseline import BaselineEntry, BaselineSnapshot
from manifestwarden.models.reports import DriftKind


def _detect(baseline_text: str, current_text: str):
    snapshot = generate_baseline(parse_manifest(baseline_text))
    return DriftDetector(snapshot).detect(parse_manifest(current_text).archives)


class TestDrift:
    def test_no_drift(self, manifest_text):
        report = _detect(manifest_text, manifest_text)
        assert not report.drift
        assert report.to_json_dict()["count"] == 0

    def test_hash_change(self, manifest_text):
        new_sha = sha256_hex(b"alpha v2")
        report = _detect(manifest_text, render_manifest(alpha_sha=new_sha))
        [event] = report.events
        assert event.kind == DriftKind.HASH_CHANGE
        assert event.name == "alpha-tool"
        assert event.baseline == sha256_hex(ALPHA_BYTES)
        assert event.current == new_sha

    def test_size_change_with_same_hash(self, manifest_text):
        report = _detect(manifest_text, render_manifest(alpha_len=len(ALPHA_BYTES) + 1))
        assert [e.kind for e in report.events] == [DriftKind.SIZE_CHANGE]

    def test_new_and_missing(self):
        base = f"archives:\n  - name: old\n    url: u\n    sha256: {sha256_hex(b'o')}\n"
        cur = f"archives:\n  - name: fresh\n    url: u\n    sha256: {sha256_hex(b'f')}\n"
        report = _detect(base, cur)
        assert report.counts() == {
            "new_in_manifest": 1,
            "missing_in_manifest": 1,
            "hash_change": 0,
            "size_change": 0,
        }
        assert report.of_kind(DriftKind.NEW_IN_MANIFEST)[0].name == "fresh"
        assert report.of_kind(DriftKind.MISSING_IN_MANIFEST)[0].name == "old"

    def test_unresolved_entries_not_new(self, manifest_text):
        report = _detect(manifest_text, manifest_text)
        assert all(e.name != "gamma-cli" for e in report.events)

    def test_null_baseline_length_skips_size_check(self):
        digest = sha256_hex(b"x")
        snapshot = BaselineSnapshot(entries=(BaselineEntry(name="a", sha256=digest),))
        current = parse_manifest(
            f"archives:\n  - name: a\n    url: u\n    sha256: {digest}\n    content_length: 5\n"
        )
        assert not DriftDetector(snapshot).detect(current.archives).drift

    def test_strict_raises(self, manifest_text):
        snapshot = generate_baseline(parse_manifest(manifest_text))
        current = parse_manifest(render_manifest(alpha_sha=sha256_hex(b"tampered")))
        with pytest.raises(DriftDetected) as exc_info:
            DriftDetector(snapshot).detect(current.archives, strict=True)
        assert exc_info.value.exit_code == ExitCode.WARNINGS
        assert len(exc_info.value.report.events) == 1

    def test_itemized_json(self, manifest_text):
        report = _detect(manifest_text, render_manifest(alpha_len=1))
        data = report.to_json_dict()
        assert data["drift"] is True
        assert data["events"] == [{
            "kind": "size_change", "name": "alpha-tool",
            "baseline": len(ALPHA_BYTES), "current": 1,
        }]
