"""``manifestwarden gpg`` — validate pinned GPG key fingerprints.

Exit codes: 0 all active keys match, 2 any mismatch or error,
4 only unset (placeholder) pins remain, 3 unknown ``--name``.
"""

from __future__ import annotations

from pathlib import Path

import typer

from manifestwarden.cli.runtime import (
    audited,
    console,
    echo_json,
    load_config,
    make_cache,
    make_fetcher,
    open_manifest,
)
from manifestwarden.core.errors import ParseError
from manifestwarden.core.gpg_validator import GpgFingerprintValidator
from manifestwarden.models.reports import key_checks_exit_code
from manifestwarden.report.renderer import ReportRenderer


def gpg_cmd(
    name: str | None = typer.Option(None, "--name", "-n", help="Validate only this key."),
    all_keys: bool = typer.Option(False, "--all", help="Validate every key (the default)."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
    manifest_path: Path | None = typer.Option(
        None, "--manifest", "-m", help="Path to the manifest file.",
    ),
) -> None:
    """Fetch each key and compare its fingerprint with the manifest pin."""
    config = load_config()

    with audited(config, "gpg", component=name or "gpg_keys") as audit:
        if name and all_keys:
            raise ParseError("--name and --all are mutually exclusive")
        manifest = open_manifest(config, manifest_path).load()
        context = config.build_context(manifest)
        with make_fetcher(config) as fetcher:
            validator = GpgFingerprintValidator(manifest, make_cache(config, fetcher, context))
            checks = validator.validate(name)

        if as_json:
            echo_json({"keys": [c.to_json_dict() for c in checks]})
        else:
            renderer = ReportRenderer(console)
            renderer.print(renderer.render_keys(checks))

        audit.finish(
            key_checks_exit_code(checks),
            outcomes={c.name: c.outcome.value for c in checks},
        )
