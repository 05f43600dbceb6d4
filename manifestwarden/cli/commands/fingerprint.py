"""``manifestwarden fingerprint URL...`` — print the fingerprint of published keys.

A helper for maintainers filling in ``gpg_keys`` pins.  Exits 2 if any
URL could not be fetched or parsed.
"""

from __future__ import annotations

import typer

from manifestwarden.cli.runtime import (
    audited,
    console,
    load_config,
    make_cache,
    make_fetcher,
    optional_manifest,
)
from manifestwarden.core.errors import ExitCode
from manifestwarden.core.gpg_validator import compute_fingerprints
from manifestwarden.report.renderer import ReportRenderer


def fingerprint_cmd(
    urls: list[str] = typer.Argument(..., help="Key URLs to fetch."),
) -> None:
    """Compute upper-case primary fingerprints for one or more key URLs."""
    config = load_config()

    with audited(config, "fingerprint", component="gpg") as audit:
        context = config.build_context(optional_manifest(config))
        with make_fetcher(config) as fetcher:
            results = compute_fingerprints(urls, make_cache(config, fetcher, context))

        renderer = ReportRenderer(console)
        renderer.print(renderer.render_fingerprints(results))

        failed = [r.url for r in results if r.error]
        audit.finish(ExitCode.FAILURE if failed else ExitCode.OK, failed=failed)
