"""Runtime configuration — env-driven, with the legacy unprefixed toggles.

Centralized config using pydantic-settings. Reads from a .env file and
MANIFESTWARDEN_* environment variables. The long-standing unprefixed
variables (``OFFLINE_MODE``, ``CACHE_DIR``, ``STRICT_MODE``, ``CI``,
``LOG_JSONL``) are honoured as well, so existing CI jobs keep working.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from manifestwarden.core.archive_verifier import DEFAULT_CONCURRENCY, DEFAULT_META_PATTERNS
from manifestwarden.core.fetcher import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from manifestwarden.core.policy import DEFAULT_PACKAGE_MANAGER_TYPES
from manifestwarden.models.context import RunContext
from manifestwarden.models.manifest import Manifest

_FALSEY = frozenset({"", "0", "false", "no", "off"})


def _default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / "dev-env-cache"


class WardenConfig(BaseSettings):
    """Configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export OFFLINE_MODE=1
        export CACHE_DIR=/var/cache/dev-env
        export MANIFESTWARDEN_CONCURRENCY=8
        export MANIFESTWARDEN_MANIFEST_PATH=manifests/versions.yaml

    Or via .env file::

        MANIFESTWARDEN_LOG_LEVEL=DEBUG
        STRICT_MODE=1
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MANIFESTWARDEN_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: str = "INFO"
    log_jsonl: Path | None = Field(
        default=None, validation_alias=AliasChoices("LOG_JSONL", "MANIFESTWARDEN_LOG_JSONL"),
    )

    # Storage paths
    manifest_path: Path = Path("manifests/versions.yaml")
    baseline_path: Path = Path("baseline/archives.json")
    ledger_path: Path = Path("state/ledger.jsonl")
    ledger_head_path: Path | None = None
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        validation_alias=AliasChoices("CACHE_DIR", "MANIFESTWARDEN_CACHE_DIR"),
    )

    # Mode toggles
    offline_mode: bool = Field(
        default=False, validation_alias=AliasChoices("OFFLINE_MODE", "MANIFESTWARDEN_OFFLINE_MODE"),
    )
    strict_mode: bool = Field(
        default=False, validation_alias=AliasChoices("STRICT_MODE", "MANIFESTWARDEN_STRICT_MODE"),
    )
    ci: str | None = Field(default=None, validation_alias=AliasChoices("CI"))

    # Network
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    http_timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    # Policy
    package_manager_types: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_PACKAGE_MANAGER_TYPES)
    )
    meta_entry_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_META_PATTERNS))

    # Audit
    ledger_enabled: bool = True

    @property
    def strict(self) -> bool:
        """The single strict signal: ``STRICT_MODE`` or any truthy ``CI``."""
        ci = (self.ci or "").strip().lower()
        return self.strict_mode or ci not in _FALSEY

    @property
    def resolved_ledger_head_path(self) -> Path:
        return self.ledger_head_path or self.ledger_path.with_suffix(".head")

    def build_context(self, manifest: Manifest | None = None) -> RunContext:
        """Explicit run context for the components of one invocation."""
        return RunContext(
            offline=self.offline_mode,
            strict=self.strict,
            manifest_fingerprint=manifest.fingerprint if manifest else "",
        )
