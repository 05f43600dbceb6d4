"""``manifestwarden hash FILE`` — SHA-256 of a local file, optionally checked."""

from __future__ import annotations

from pathlib import Path

import typer

from manifestwarden.cli.runtime import audited, console, load_config
from manifestwarden.core.errors import ExitCode, ParseError
from manifestwarden.core.hasher import sha256_file


def hash_cmd(
    file: Path = typer.Argument(..., help="File to hash."),
    expect: str | None = typer.Option(
        None, "--expect", "-e", help="Expected SHA-256; exit 2 on mismatch.",
    ),
) -> None:
    """Print the SHA-256 of FILE in ``sha256sum`` format."""
    config = load_config()

    with audited(config, "hash", component=str(file)) as audit:
        if not file.is_file():
            raise ParseError(f"file not found: {file}")
        digest = sha256_file(file)
        typer.echo(f"{digest}  {file}")
        if expect is not None and expect.strip().lower() != digest:
            console.print(f"[bold red]MISMATCH[/bold red] expected {expect} got {digest}")
            audit.finish(ExitCode.FAILURE, expected=expect, actual=digest)
            return
        audit.extra.update(sha256=digest)
