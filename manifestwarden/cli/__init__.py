"""manifestwarden CLI — Typer-based command-line interface.

Provides the ``manifestwarden`` command with subcommands for verifying
archives, validating GPG pins, enforcing the checksum policy, detecting
drift, locking checksums, working with the offline cache and the audit
ledger.

All human output uses Rich; ``--json`` / ``--output-json`` emit plain JSON.
"""
