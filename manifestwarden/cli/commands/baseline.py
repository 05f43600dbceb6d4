"""``manifestwarden baseline`` — create the archive baseline if it is missing.

Idempotent: an existing baseline is left untouched unless ``--regenerate``
is passed, which supersedes it with a fresh snapshot of the manifest.
"""

from __future__ import annotations

from pathlib import Path

import typer

from manifestwarden.cli.runtime import audited, console, load_config, open_manifest
from manifestwarden.core.baseline import ensure_baseline, generate_baseline, write_baseline


def baseline_cmd(
    regenerate: bool = typer.Option(
        False, "--regenerate", help="Replace an existing baseline with a fresh snapshot.",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Baseline file (defaults to the configured path).",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Ensure the archive baseline exists."""
    config = load_config()
    path = output or config.baseline_path

    with audited(config, "baseline", component=str(path)) as audit:
        manifest = open_manifest(config, manifest_path).load()
        if regenerate:
            snapshot = generate_baseline(manifest)
            write_baseline(path, snapshot, regenerate=True)
            created = True
            console.print(f"[green]Regenerated baseline:[/green] {path} ({len(snapshot.entries)} entries)")
        else:
            snapshot, created = ensure_baseline(path, manifest)
            if created:
                console.print(f"[green]Created baseline:[/green] {path} ({len(snapshot.entries)} entries)")
            else:
                console.print(f"[dim]Baseline already present:[/dim] {path}")
        audit.extra.update(created=created, entries=len(snapshot.entries))
