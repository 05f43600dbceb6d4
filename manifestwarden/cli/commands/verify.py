"""``manifestwarden verify`` — check archives against their manifest checksums.

Quick mode probes the declared remote size only; full mode downloads (via
the offline cache) and checks markup, exact size and SHA-256.  Artifacts
are checked concurrently; the exit code reflects the aggregate:
0 ok, 1 warnings only (unless ``--allow-warn``), 2 any hard failure,
4 strict-mode policy violation.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import typer

from manifestwarden.cli.runtime import (
    audited,
    console,
    load_config,
    make_cache,
    make_fetcher,
    open_manifest,
    write_json,
)
from manifestwarden.core.archive_verifier import ArchiveVerifier
from manifestwarden.core.baseline import load_baseline
from manifestwarden.core.policy import ChecksumPolicy
from manifestwarden.models.reports import VerifyMode
from manifestwarden.report.renderer import ReportRenderer

logger = logging.getLogger(__name__)


def verify_cmd(
    name_filter: str | None = typer.Option(
        None, "--filter", "-f", help="Only verify archives whose name contains this substring.",
    ),
    quick: bool = typer.Option(
        False, "--quick", help="Compare declared remote sizes only; download nothing.",
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-j", min=1, help="Maximum parallel checks.",
    ),
    size_warn: float | None = typer.Option(
        None, "--size-warn", min=0.0,
        help="Warn when a size drifts more than this percentage from the baseline.",
    ),
    allow_warn: bool = typer.Option(
        False, "--allow-warn", help="Exit 0 when there are warnings but no failures.",
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Re-download even when the artifact is cached.",
    ),
    output_json: Path | None = typer.Option(
        None, "--output-json", help="Write the JSON summary to this file.",
    ),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
    baseline_path: Path | None = typer.Option(
        None, "--baseline", help="Baseline used by --size-warn.",
    ),
) -> None:
    """Verify archive checksums, sizes and content type."""
    config = load_config()
    mode = VerifyMode.QUICK if quick else VerifyMode.FULL

    with audited(config, "verify", component=name_filter or "archives") as audit:
        manifest = open_manifest(config, manifest_path).load()
        context = config.build_context(manifest)

        baseline = None
        if size_warn is not None:
            path = baseline_path or config.baseline_path
            if baseline_path is not None or Path(path).is_file():
                baseline = load_baseline(path)
            else:
                logger.warning("No baseline at %s; --size-warn has nothing to compare", path)

        with make_fetcher(config) as fetcher:
            verifier = ArchiveVerifier(
                manifest,
                make_cache(config, fetcher, context),
                fetcher=fetcher,
                context=context,
                concurrency=concurrency or config.concurrency,
                name_filter=name_filter,
                meta_patterns=config.meta_entry_patterns,
                size_warn_pct=size_warn,
                baseline=baseline,
                policy=ChecksumPolicy(config.package_manager_types),
            )
            summary = verifier.verify(mode, refresh=refresh, cancel=threading.Event())

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_verification(summary))
        if output_json is not None:
            write_json(output_json, summary.to_json_dict())

        audit.finish(
            summary.exit_code(allow_warn=allow_warn),
            mode=mode.value,
            count=summary.count,
            failures=summary.failures,
            warnings=summary.warnings,
        )
