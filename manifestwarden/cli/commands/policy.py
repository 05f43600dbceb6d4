"""``manifestwarden policy`` — report entries that lack a concrete checksum.

Without strict mode missing checksums are reported and the command
passes; with ``--strict`` (or ``STRICT_MODE`` / ``CI``) they exit 4.
"""

from __future__ import annotations

from pathlib import Path

import typer

from manifestwarden.cli.runtime import audited, console, load_config, open_manifest, write_json
from manifestwarden.core.policy import ChecksumPolicy
from manifestwarden.report.renderer import ReportRenderer


def policy_cmd(
    strict: bool = typer.Option(
        False, "--strict", help="Fail (exit 4) on any missing or malformed checksum.",
    ),
    output_json: Path | None = typer.Option(
        None, "--output-json", help="Write the JSON report to this file.",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Validate that archives and non-package-manager sources are pinned."""
    config = load_config()
    strict = strict or config.strict

    with audited(config, "policy", component="checksums") as audit:
        manifest = open_manifest(config, manifest_path).load()
        policy = ChecksumPolicy(config.package_manager_types)
        report = policy.check(manifest)

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_policy(report, strict=strict))
        if output_json is not None:
            write_json(output_json, report.to_json_dict(strict=strict))

        audit.extra.update(strict=strict, findings=len(report.findings))
        policy.enforce(manifest, strict=strict)
