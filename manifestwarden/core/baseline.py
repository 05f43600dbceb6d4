"""Baseline snapshots — generate, persist and load archive digests.

The baseline file is a JSON list of ``{name, sha256, content_length}``.
Once written it is immutable: :func:`write_baseline` refuses to replace an
existing file unless the caller explicitly regenerates.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from manifestwarden.core.errors import ExitCode, ParseError, WardenError
from manifestwarden.core.offline_cache import atomic_write_bytes
from manifestwarden.models.baseline import BaselineEntry, BaselineSnapshot
from manifestwarden.models.manifest import Manifest, is_concrete_sha256

logger = logging.getLogger(__name__)


class BaselineExistsError(WardenError):
    """Raised when writing would overwrite a baseline without ``regenerate``."""

    exit_code = ExitCode.CONFIG_ERROR


def generate_baseline(manifest: Manifest) -> BaselineSnapshot:
    """Snapshot every archive with a concrete, non-placeholder sha256."""
    entries = [
        BaselineEntry(name=a.name, sha256=a.sha256, content_length=a.content_length)
        for a in manifest.archives
        if is_concrete_sha256(a.sha256) and not a.is_exempt
    ]
    return BaselineSnapshot(entries=tuple(entries))


def dump_baseline(snapshot: BaselineSnapshot) -> bytes:
    data = [e.model_dump() for e in snapshot.entries]
    return (json.dumps(data, indent=2) + "\n").encode("utf-8")


def write_baseline(path: Path, snapshot: BaselineSnapshot, *, regenerate: bool = False) -> Path:
    """Persist *snapshot* at *path*.

    Raises ``BaselineExistsError`` if *path* exists and *regenerate* is False.
    """
    path = Path(path)
    if path.exists() and not regenerate:
        raise BaselineExistsError(
            f"baseline already exists at {path}; pass regenerate=True to supersede it"
        )
    atomic_write_bytes(path, dump_baseline(snapshot))
    logger.info("Wrote baseline with %d entries to %s", len(snapshot.entries), path)
    return path


def load_baseline(path: Path) -> BaselineSnapshot:
    """Read and validate a baseline file; malformed content is a ``ParseError``."""
    path = Path(path)
    if not path.is_file():
        raise ParseError(f"baseline not found: {path}")
    try:
        raw = json.loads(path.read_bytes())
    except json.JSONDecodeError as exc:
        raise ParseError(f"baseline {path} is not valid JSON: {exc}") from None
    if not isinstance(raw, list):
        raise ParseError(f"baseline {path} must be a JSON list of entries")
    try:
        entries = tuple(BaselineEntry.model_validate(item) for item in raw)
    except ValidationError as exc:
        raise ParseError(f"baseline {path} has a malformed entry: {exc}") from None
    return BaselineSnapshot(entries=entries)


def ensure_baseline(path: Path, manifest: Manifest) -> tuple[BaselineSnapshot, bool]:
    """Load the baseline at *path*, generating it first if missing.

    Idempotent.  Returns ``(snapshot, created)``.
    """
    path = Path(path)
    if path.exists():
        logger.info("Baseline exists: %s", path)
        return load_baseline(path), False
    snapshot = generate_baseline(manifest)
    write_baseline(path, snapshot)
    return snapshot, True
