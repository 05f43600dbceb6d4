"""``manifestwarden lock`` — resolve ``TBD`` checksums by download.

Dry-run by default: prints a unified diff of the revised manifest.  With
``--write`` the manifest is rewritten in place; only the ``sha256`` lines
of resolved entries change.  Exits 2 if any entry could not be resolved.
"""

from __future__ import annotations

import difflib
from pathlib import Path

import typer

from manifestwarden.cli.runtime import (
    audited,
    console,
    load_config,
    make_cache,
    make_fetcher,
    open_manifest,
)
from manifestwarden.core.checksum_locker import ChecksumLocker
from manifestwarden.core.errors import ExitCode
from manifestwarden.core.policy import ChecksumPolicy
from manifestwarden.report.renderer import ReportRenderer


def lock_cmd(
    write: bool = typer.Option(False, "--write", help="Rewrite the manifest in place."),
    name_filter: str | None = typer.Option(
        None, "--filter", "-f", help="Only lock entries whose name contains this substring.",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Download unresolved entries and fill in their SHA-256."""
    config = load_config()

    with audited(config, "lock", component=name_filter or "manifest") as audit:
        store = open_manifest(config, manifest_path)
        manifest = store.load()
        original = store.read_text()
        context = config.build_context(manifest)
        with make_fetcher(config) as fetcher:
            locker = ChecksumLocker(
                manifest,
                make_cache(config, fetcher, context),
                name_filter=name_filter,
                policy=ChecksumPolicy(config.package_manager_types),
            )
            plan = locker.plan(original)

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_lock(plan))

        if write and plan.locked:
            ChecksumLocker.write(store.path, plan)
            console.print(f"[green]Updated {store.path} ({len(plan.locked)} checksum(s)).[/green]")
        elif plan.locked:
            diff = difflib.unified_diff(
                original.splitlines(keepends=True),
                plan.revised_text.splitlines(keepends=True),
                fromfile=str(store.path),
                tofile=f"{store.path} (locked)",
            )
            typer.echo("".join(diff), nl=False)
            console.print("[dim]Dry run; pass --write to apply.[/dim]")
        else:
            console.print("[dim]Nothing to lock.[/dim]")

        audit.finish(
            ExitCode.FAILURE if plan.failed else ExitCode.OK,
            locked=[o.name for o in plan.locked],
            failed=[o.name for o in plan.failed],
            written=bool(write and plan.locked),
        )
