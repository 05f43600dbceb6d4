"""``manifestwarden lengths`` — collect declared remote sizes for the manifest.

Prints each archive's remote Content-Length so maintainers can fill in
``content_length``.  Exits 1 when any size could not be determined.
"""

from __future__ import annotations

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
from manifestwarden.core.archive_verifier import ArchiveVerifier
from manifestwarden.core.errors import ExitCode
from manifestwarden.report.renderer import ReportRenderer


def lengths_cmd(
    name_filter: str | None = typer.Option(
        None, "--filter", "-f", help="Only probe archives whose name contains this substring.",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Probe the remote Content-Length of every archive."""
    config = load_config()

    with audited(config, "lengths", component=name_filter or "archives") as audit:
        manifest = open_manifest(config, manifest_path).load()
        context = config.build_context(manifest)
        with make_fetcher(config) as fetcher:
            verifier = ArchiveVerifier(
                manifest,
                make_cache(config, fetcher, context),
                fetcher=fetcher,
                context=context,
                concurrency=config.concurrency,
                name_filter=name_filter,
                meta_patterns=config.meta_entry_patterns,
            )
            probes = verifier.collect_lengths()

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_lengths(probes))

        unknown = [p.name for p in probes if p.error or p.content_length is None]
        audit.finish(ExitCode.WARNINGS if unknown else ExitCode.OK, probed=len(probes), unknown=unknown)
