"""``manifestwarden fetch URL`` — fetch through the offline cache.

Online, a miss is downloaded and cached; offline (``OFFLINE_MODE=1``) a
miss fails with exit 2 and never touches the network.
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
    optional_manifest,
)
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.offline_cache import atomic_write_bytes


def fetch_cmd(
    url: str = typer.Argument(..., help="URL to fetch."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Also copy the body to this file.",
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Re-download even when cached."),
) -> None:
    """Fetch a URL with the offline cache in front of it."""
    config = load_config()

    with audited(config, "fetch", component=url) as audit:
        context = config.build_context(optional_manifest(config))
        with make_fetcher(config) as fetcher:
            data = make_cache(config, fetcher, context).fetch_with_cache(url, revalidate=refresh)
        if output is not None:
            atomic_write_bytes(output, data)
        digest = sha256_hex(data)
        console.print(f"{digest}  {len(data)} bytes  {url}", highlight=False)
        audit.extra.update(sha256=digest, size=len(data), offline=context.offline)
