"""Unit tests for the Rich report renderer."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from manifestwarden.models.reports import (
    ArtifactReport,
    DriftEvent,
    DriftKind,
    DriftReport,
    KeyCheck,
    KeyOutcome,
    VerificationResult,
    VerificationSummary,
    VerifyMode,
)
from manifestwarden.report.renderer import ReportRenderer


@pytest.fixture
def renderer() -> ReportRenderer:
    return ReportRenderer(Console(file=io.StringIO(), width=160, force_terminal=False))


def _text(renderer: ReportRenderer) -> str:
    return renderer.console.file.getvalue()


def test_verification_panel(renderer: ReportRenderer):
    summary = VerificationSummary(
        mode=VerifyMode.FULL,
        artifacts=(
            ArtifactReport(name="alpha-tool", result=VerificationResult.OK),
            ArtifactReport(name="beta-sdk", result=VerificationResult.DOWNLOAD_FAIL, timed_out=True),
        ),
    )
    renderer.print(renderer.render_verification(summary))
    out = _text(renderer)
    assert "alpha-tool" in out
    assert "timed out" in out
    assert "Failures:" in out


def test_keys_table(renderer: ReportRenderer):
    renderer.print(renderer.render_keys([
        KeyCheck(name="vendor", outcome=KeyOutcome.MISMATCH, expected="A" * 40, actual="B" * 40),
    ]))
    assert "vendor" in _text(renderer)


def test_drift_panels(renderer: ReportRenderer):
    renderer.print(renderer.render_drift(DriftReport()))
    assert "No drift" in _text(renderer)
    renderer.print(renderer.render_drift(DriftReport(events=(
        DriftEvent(kind=DriftKind.SIZE_CHANGE, name="alpha-tool", baseline=10, current=12),
    ))))
    assert "size_change" in _text(renderer)


def test_chain_verification_messages(renderer: ReportRenderer):
    renderer.print_chain_verification(3, True)
    renderer.print_chain_verification(-1, False, "head mismatch")
    out = _text(renderer)
    assert "chain intact (3 record(s))" in out
    assert "head mismatch" in out
