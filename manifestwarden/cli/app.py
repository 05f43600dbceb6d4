"""Main Typer application — imports and registers all CLI commands.

Entry point: ``manifestwarden`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from manifestwarden.cli.commands.baseline import baseline_cmd
from manifestwarden.cli.commands.drift import drift_cmd
from manifestwarden.cli.commands.fetch import fetch_cmd
from manifestwarden.cli.commands.fingerprint import fingerprint_cmd
from manifestwarden.cli.commands.gpg import gpg_cmd
from manifestwarden.cli.commands.hash_cmd import hash_cmd
from manifestwarden.cli.commands.ledger_cmd import ledger_record_cmd, ledger_verify_cmd
from manifestwarden.cli.commands.lengths import lengths_cmd
from manifestwarden.cli.commands.lock import lock_cmd
from manifestwarden.cli.commands.policy import policy_cmd
from manifestwarden.cli.commands.verify import verify_cmd

app = typer.Typer(
    name="manifestwarden",
    help="manifestwarden: supply-chain integrity checks for a pinned dev-environment manifest.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="verify", help="Verify archive checksums, sizes and content type.")(verify_cmd)
app.command(name="lengths", help="Collect remote Content-Length values.")(lengths_cmd)
app.command(name="policy", help="Check that required checksums are pinned.")(policy_cmd)
app.command(name="gpg", help="Validate pinned GPG key fingerprints.")(gpg_cmd)
app.command(name="fingerprint", help="Compute fingerprints of published keys.")(fingerprint_cmd)
app.command(name="drift", help="Compare the baseline with the manifest.")(drift_cmd)
app.command(name="baseline", help="Create (or regenerate) the archive baseline.")(baseline_cmd)
app.command(name="lock", help="Resolve TBD checksums by download.")(lock_cmd)
app.command(name="fetch", help="Fetch a URL through the offline cache.")(fetch_cmd)
app.command(name="hash", help="SHA-256 of a local file.")(hash_cmd)
app.command(name="ledger-record", help="Append a record to the audit ledger.")(ledger_record_cmd)
app.command(name="ledger-verify", help="Verify the audit ledger hash chain.")(ledger_verify_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
