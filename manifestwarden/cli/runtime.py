"""Shared plumbing for CLI commands.

Every command runs inside :func:`audited`, which

- converts a ``WardenError`` into its exit code (the single place where
  failures become ``typer.Exit``),
- aborts immediately on ``LedgerCorruption``,
- appends one audit ledger record per invocation when the ledger is enabled,
  tagged with the platform from the run context.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from manifestwarden.config import WardenConfig
from manifestwarden.core.audit_ledger import AuditLedger
from manifestwarden.core.errors import ExitCode, LedgerCorruption, WardenError
from manifestwarden.core.fetcher import HttpFetcher
from manifestwarden.core.manifest_store import ManifestStore
from manifestwarden.core.offline_cache import OfflineCache, atomic_write_bytes
from manifestwarden.logs import configure_logging
from manifestwarden.models.context import RunContext
from manifestwarden.models.manifest import Manifest

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def load_config() -> WardenConfig:
    """Build the config from env / .env and install logging."""
    try:
        config = WardenConfig()
    except ValidationError as exc:
        err_console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=int(ExitCode.CONFIG_ERROR)) from None
    configure_logging(config.log_level, config.log_jsonl)
    return config


def open_ledger(config: WardenConfig) -> AuditLedger:
    return AuditLedger(config.ledger_path, config.resolved_ledger_head_path)


def open_manifest(config: WardenConfig, override: Path | None = None) -> ManifestStore:
    """Load the manifest (or raise ``ParseError``); the store keeps the parsed copy."""
    store = ManifestStore(override or config.manifest_path)
    store.load()
    return store


def optional_manifest(config: WardenConfig) -> Manifest | None:
    """The configured manifest if one exists; used only for cache staleness."""
    if not Path(config.manifest_path).is_file():
        return None
    return ManifestStore(config.manifest_path).load()


def make_fetcher(config: WardenConfig) -> HttpFetcher:
    return HttpFetcher(timeout=config.http_timeout, user_agent=config.user_agent)


def make_cache(config: WardenConfig, fetcher: HttpFetcher, context: RunContext) -> OfflineCache:
    return OfflineCache(config.cache_dir, fetcher=fetcher, context=context)


def write_json(path: Path, data: dict[str, Any]) -> None:
    atomic_write_bytes(Path(path), (json.dumps(data, indent=2) + "\n").encode("utf-8"))
    logger.info("Wrote JSON summary to %s", path)


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


class CommandAudit:
    """Mutable outcome of one command, filled in by the command body."""

    def __init__(self, action: str, component: str) -> None:
        self.action = action
        self.component = component
        self.exit_code = int(ExitCode.OK)
        self.extra: dict[str, Any] = {}

    @property
    def status(self) -> str:
        if self.exit_code == ExitCode.OK:
            return "ok"
        if self.exit_code == ExitCode.WARNINGS:
            return "warn"
        return "fail"

    def finish(self, exit_code: int, **extra: Any) -> None:
        self.exit_code = int(exit_code)
        self.extra.update(extra)


@contextmanager
def audited(
    config: WardenConfig,
    action: str,
    *,
    component: str = "",
    record: bool = True,
) -> Iterator[CommandAudit]:
    audit = CommandAudit(action, component)
    context = config.build_context()
    started = time.monotonic()
    try:
        yield audit
    except LedgerCorruption as exc:
        logger.error("Ledger corruption at record %d: %s", exc.index, exc)
        err_console.print(f"[bold red]Ledger corrupted:[/bold red] {exc}")
        raise typer.Exit(code=int(exc.exit_code)) from None
    except WardenError as exc:
        logger.error("%s failed: %s", action, exc)
        err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        audit.finish(exc.exit_code, error=str(exc))

    if record and config.ledger_enabled:
        duration_ms = int((time.monotonic() - started) * 1000)
        try:
            open_ledger(config).record(
                action=audit.action,
                component=audit.component,
                status=audit.status,
                duration_ms=duration_ms,
                extra={"platform": context.platform, **audit.extra},
            )
        except LedgerCorruption as exc:
            err_console.print(f"[bold red]Ledger corrupted; refusing to append:[/bold red] {exc}")
            raise typer.Exit(code=int(exc.exit_code)) from None

    if audit.exit_code:
        raise typer.Exit(code=audit.exit_code)
