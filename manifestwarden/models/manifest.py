"""Typed manifest records — archives, sources and pinned GPG keys.

The manifest is the single source of expected integrity metadata.  Records
are created only by the Manifest Store from manifest text; nothing in this
package mutates them.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

# Literal the manifest uses for a checksum nobody has resolved yet.
UNRESOLVED_MARKER = "TBD"

# Explicit all-zero checksum: meta/release-marker entries exempt from hashing.
EXEMPT_SHA256 = "0" * 64

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
_FINGERPRINT_RE = re.compile(r"^[0-9A-Fa-f]{40}$")


def is_concrete_sha256(value: str) -> bool:
    """Return True if *value* is a 64-char lowercase hex digest (placeholder included)."""
    return bool(_SHA256_RE.match(value))


def is_exempt_sha256(value: str) -> bool:
    return value == EXEMPT_SHA256


def is_unresolved(value: str) -> bool:
    return value.strip() == "" or value == UNRESOLVED_MARKER


class KeyStatus(str, Enum):
    """Whether a pinned GPG key participates in validation."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class ArchiveEntry(BaseModel):
    """An externally hosted binary archive with its expected digest and size."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    sha256: str = UNRESOLVED_MARKER
    content_length: int | None = None
    extra: dict[str, str] = {}
    line_numbers: dict[str, int] = {}  # field -> 1-based manifest line

    @property
    def is_exempt(self) -> bool:
        return is_exempt_sha256(self.sha256)

    @property
    def is_unresolved(self) -> bool:
        return is_unresolved(self.sha256)


class SourceEntry(BaseModel):
    """A downloadable source; package-manager types are integrity-exempt."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "other"
    url: str
    sha256: str = UNRESOLVED_MARKER
    extra: dict[str, str] = {}
    line_numbers: dict[str, int] = {}

    @property
    def is_unresolved(self) -> bool:
        return is_unresolved(self.sha256)


class GPGKeyEntry(BaseModel):
    """A signing key whose fingerprint is pinned before it may be trusted."""

    model_config = ConfigDict(frozen=True)

    name: str
    fingerprint: str = ""
    source: str = ""
    status: KeyStatus = KeyStatus.ACTIVE
    extra: dict[str, str] = {}
    line_numbers: dict[str, int] = {}

    @property
    def is_placeholder(self) -> bool:
        """True while the pin is unset (empty, TBD or ``PLACEHOLDER_*``)."""
        fp = self.fingerprint.strip()
        return (
            not fp
            or fp == UNRESOLVED_MARKER
            or fp.upper().startswith("PLACEHOLDER_")
        )

    @property
    def has_valid_pin(self) -> bool:
        return bool(_FINGERPRINT_RE.match(self.fingerprint))

    @property
    def is_active(self) -> bool:
        return self.status == KeyStatus.ACTIVE


class Manifest(BaseModel):
    """Parsed manifest: every typed section plus a fingerprint of the raw bytes."""

    model_config = ConfigDict(frozen=True)

    path: Path | None = None
    fingerprint: str = ""  # sha256 of the raw manifest bytes
    archives: tuple[ArchiveEntry, ...] = ()
    sources: tuple[SourceEntry, ...] = ()
    gpg_keys: tuple[GPGKeyEntry, ...] = ()

    def archive(self, name: str) -> ArchiveEntry | None:
        return next((a for a in self.archives if a.name == name), None)

    def source(self, name: str) -> SourceEntry | None:
        return next((s for s in self.sources if s.name == name), None)

    def gpg_key(self, name: str) -> GPGKeyEntry | None:
        return next((k for k in self.gpg_keys if k.name == name), None)
