"""``manifestwarden ledger-record`` / ``ledger-verify`` — the audit ledger.

``ledger-record`` appends one record and prints the new head.
``ledger-verify`` walks the whole chain (or, with ``--head-only``, only
checks that the head matches the last record); corruption exits 2.
"""

from __future__ import annotations

import json

import typer

from manifestwarden.cli.runtime import audited, console, load_config, open_ledger
from manifestwarden.core.errors import LedgerCorruption, ParseError
from manifestwarden.report.renderer import ReportRenderer


def ledger_record_cmd(
    action: str = typer.Option(..., "--action", "-a", help="Operation being recorded."),
    component: str = typer.Option("", "--component", "-c", help="Component acted on."),
    status: str = typer.Option("ok", "--status", "-s", help="Outcome, e.g. ok or fail."),
    duration_ms: int | None = typer.Option(None, "--duration-ms", min=0, help="Elapsed time."),
    extra: str | None = typer.Option(None, "--extra", help="Additional fields as a JSON object."),
) -> None:
    """Append a record to the audit ledger."""
    config = load_config()

    with audited(config, "ledger-record", record=False):
        extra_fields = None
        if extra:
            try:
                extra_fields = json.loads(extra)
            except json.JSONDecodeError as exc:
                raise ParseError(f"--extra is not valid JSON: {exc}") from None
            if not isinstance(extra_fields, dict):
                raise ParseError("--extra must be a JSON object")
        sealed = open_ledger(config).record(
            action=action,
            component=component,
            status=status,
            duration_ms=duration_ms,
            extra=extra_fields,
        )
        typer.echo(sealed.record_hash)


def ledger_verify_cmd(
    head_only: bool = typer.Option(
        False, "--head-only",
        help="Only check the head against the last record (misses interior tampering).",
    ),
) -> None:
    """Verify the audit ledger's hash chain."""
    config = load_config()

    with audited(config, "ledger-verify", record=False):
        ledger = open_ledger(config)
        renderer = ReportRenderer(console)
        if head_only:
            head = ledger.check_head()
            console.print(f"[green]OK head consistent[/green] ({head})", highlight=False)
        else:
            try:
                count = ledger.verify()
            except LedgerCorruption as exc:
                renderer.print_chain_verification(exc.index, False, str(exc))
                raise
            renderer.print_chain_verification(count, True)
