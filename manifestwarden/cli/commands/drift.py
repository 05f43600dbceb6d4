"""``manifestwarden drift`` — compare the recorded baseline with the manifest.

Exits 1 when any drift event is found, 3 when the baseline is missing or
malformed.
"""

from __future__ import annotations

from pathlib import Path

import typer

from manifestwarden.cli.runtime import audited, console, load_config, open_manifest, write_json
from manifestwarden.core.baseline import load_baseline
from manifestwarden.core.drift_detector import DriftDetector
from manifestwarden.core.errors import ExitCode
from manifestwarden.report.renderer import ReportRenderer


def drift_cmd(
    baseline_path: Path | None = typer.Option(
        None, "--baseline", "-b", help="Baseline file (defaults to the configured path).",
    ),
    output_json: Path | None = typer.Option(
        None, "--output-json", help="Write the itemized drift report to this file.",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Detect new, missing, re-hashed and re-sized archives."""
    config = load_config()

    with audited(config, "drift", component="archives") as audit:
        manifest = open_manifest(config, manifest_path).load()
        snapshot = load_baseline(baseline_path or config.baseline_path)
        report = DriftDetector(snapshot).detect(manifest.archives)

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_drift(report))
        if output_json is not None:
            write_json(output_json, report.to_json_dict())

        audit.finish(ExitCode.WARNINGS if report.drift else ExitCode.OK, counts=report.counts())
