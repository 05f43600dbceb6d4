"""Manifest Store — parses the block-structured manifest into typed records.

The manifest is a small YAML subset::

    archives:
      - name: eclipse-linux
        url: https://example.org/eclipse.tar.gz
        sha256: 3f...  # 64 hex, TBD, or all zeros for meta entries
        content_length: 123456
    sources:
      - name: requests
        type: pypi
        url: https://pypi.org/project/requests
        sha256: TBD
    gpg_keys:
      - name: microsoft-vscode
        fingerprint: BC528686B50D79E339D3721CEB3E94ADBE1229CF
        source: https://packages.microsoft.com/keys/microsoft.asc
        status: active

Parsing is a line classifier driving a section state machine
(``NONE``, ``IN_ARCHIVES``, ``IN_SOURCES``, ``IN_GPG_KEYS``).  An entry is
flushed when the next entry starts, when its section ends, and at end of
input — the last entry of the last section is never dropped.  Content of
unknown top-level keys is ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from manifestwarden.core.errors import ParseError
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.models.manifest import (
    ArchiveEntry,
    GPGKeyEntry,
    KeyStatus,
    Manifest,
    SourceEntry,
)

logger = logging.getLogger(__name__)


class SectionState(str, Enum):
    NONE = "none"
    IN_ARCHIVES = "archives"
    IN_SOURCES = "sources"
    IN_GPG_KEYS = "gpg_keys"


_SECTION_KEYS: dict[str, SectionState] = {
    "archives": SectionState.IN_ARCHIVES,
    "sources": SectionState.IN_SOURCES,
    "gpg_keys": SectionState.IN_GPG_KEYS,
}

_KNOWN_FIELDS: dict[SectionState, frozenset[str]] = {
    SectionState.IN_ARCHIVES: frozenset({"name", "url", "sha256", "content_length"}),
    SectionState.IN_SOURCES: frozenset({"name", "type", "url", "sha256"}),
    SectionState.IN_GPG_KEYS: frozenset({"name", "fingerprint", "source", "status"}),
}

_SKIP_RE = re.compile(r"^\s*(#.*)?$")
_DOC_MARKER_RE = re.compile(r"^(---|\.\.\.)\s*$")
_TOP_LEVEL_RE = re.compile(r"^([A-Za-z_][\w.-]*):\s*(.*)$")
_ENTRY_START_RE = re.compile(r"^(\s*)-\s+([A-Za-z_][\w.-]*):(?:\s+(.*))?$")
_BARE_ITEM_RE = re.compile(r"^(\s*)-(?:\s+(.*))?$")
_FIELD_RE = re.compile(r"^(\s+)([A-Za-z_][\w.-]*):(?:\s+(.*))?$")
_HEX64_RE = re.compile(r"^[0-9A-Fa-f]{64}$")


def clean_value(raw: str | None) -> str:
    """Strip an inline ``# comment`` and surrounding quotes from a scalar."""
    if raw is None:
        return ""
    value = raw.strip()
    if value.startswith("#"):
        return ""
    if value[:1] in ("'", '"'):
        quote = value[0]
        end = value.find(quote, 1)
        if end != -1:
            return value[1:end]
    hash_at = value.find(" #")
    if hash_at != -1:
        value = value[:hash_at]
    return value.strip()


@dataclass
class _PendingEntry:
    """Accumulator for one list item while its lines are being read."""

    section: SectionState
    start_line: int
    dash_indent: int
    field_indent: int
    fields: dict[str, str] = field(default_factory=dict)
    line_numbers: dict[str, int] = field(default_factory=dict)
    last_field: str = ""

    def set(self, key: str, value: str, line_number: int) -> None:
        self.fields[key] = value
        self.line_numbers[key] = line_number
        self.last_field = key

    def append_nested(self, key: str, value: str) -> None:
        existing = self.fields.get(key, "")
        self.fields[key] = f"{existing},{value}" if existing else value


class ManifestParser:
    """Single-use line classifier; call :meth:`parse` once per text."""

    def __init__(self) -> None:
        self._state = SectionState.NONE
        self._pending: _PendingEntry | None = None
        self._records: dict[SectionState, list[dict[str, Any]]] = {
            s: [] for s in _KNOWN_FIELDS
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def parse(self, text: str) -> dict[SectionState, list[dict[str, Any]]]:
        for line_number, line in enumerate(text.splitlines(), start=1):
            self._feed(line, line_number)
        self._flush()  # end of input
        return self._records

    def _feed(self, line: str, line_number: int) -> None:
        if _SKIP_RE.match(line) or _DOC_MARKER_RE.match(line):
            return

        top = _TOP_LEVEL_RE.match(line)
        if top:
            self._enter_section(top.group(1), clean_value(top.group(2)), line_number)
            return

        if self._state == SectionState.NONE:
            return

        entry = _ENTRY_START_RE.match(line)
        if entry:
            self._on_entry_start(
                len(entry.group(1)), entry.group(2), clean_value(entry.group(3)),
                line, line_number,
            )
            return

        fld = _FIELD_RE.match(line)
        if fld:
            self._on_field(len(fld.group(1)), fld.group(2), clean_value(fld.group(3)), line_number)
            return

        bare = _BARE_ITEM_RE.match(line)
        if bare:
            self._on_bare_item(len(bare.group(1)), clean_value(bare.group(2)), line_number)
            return

        raise ParseError(
            f"unrecognized line in '{self._state.value}' section: {line.strip()!r}",
            line_number=line_number,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _enter_section(self, key: str, inline: str, line_number: int) -> None:
        self._flush()  # section end
        self._state = _SECTION_KEYS.get(key, SectionState.NONE)
        if self._state != SectionState.NONE and inline not in ("", "[]"):
            raise ParseError(
                f"section '{key}' must be a block list, got inline value {inline!r}",
                line_number=line_number,
            )

    def _on_entry_start(
        self, indent: int, key: str, value: str, line: str, line_number: int,
    ) -> None:
        pending = self._pending
        if pending is not None and indent > pending.dash_indent:
            # Nested list item under the previous field (e.g. mirrors).
            pending.append_nested(pending.last_field, f"{key}: {value}" if value else key)
            return
        self._flush()
        key_col = line.index(key, indent)
        self._pending = _PendingEntry(
            section=self._state,
            start_line=line_number,
            dash_indent=indent,
            field_indent=key_col,
        )
        self._pending.set(key, value, line_number)

    def _on_field(self, indent: int, key: str, value: str, line_number: int) -> None:
        pending = self._pending
        if pending is None:
            raise ParseError(
                f"field '{key}' appears before any '- ' entry in '{self._state.value}'",
                line_number=line_number,
            )
        if indent == pending.field_indent:
            pending.set(key, value, line_number)
        elif indent > pending.field_indent and pending.last_field:
            pending.fields[f"{pending.last_field}.{key}"] = value
        else:
            raise ParseError(
                f"field '{key}' is not aligned with its entry", line_number=line_number
            )

    def _on_bare_item(self, indent: int, value: str, line_number: int) -> None:
        pending = self._pending
        if pending is not None and indent > pending.dash_indent and pending.last_field:
            pending.append_nested(pending.last_field, value)
            return
        if pending is None or indent <= pending.dash_indent:
            self._flush()
            self._pending = _PendingEntry(
                section=self._state,
                start_line=line_number,
                dash_indent=indent,
                field_indent=indent + 2,
            )
            return
        raise ParseError("dangling list item", line_number=line_number)

    def _flush(self) -> None:
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        if not pending.fields.get("name"):
            raise ParseError(
                f"entry in '{pending.section.value}' has no name",
                line_number=pending.start_line,
            )
        self._records[pending.section].append({
            "fields": pending.fields,
            "line_numbers": pending.line_numbers,
            "start_line": pending.start_line,
        })


# ---------------------------------------------------------------------------
# Record construction
# ---------------------------------------------------------------------------


def _split_extra(section: SectionState, fields: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    known = _KNOWN_FIELDS[section]
    core = {k: v for k, v in fields.items() if k in known}
    extra = {k: v for k, v in fields.items() if k not in known}
    return core, extra


def _normalize_sha(value: str) -> str:
    return value.lower() if _HEX64_RE.match(value) else value


def _require(core: dict[str, str], key: str, section: SectionState, start_line: int) -> str:
    value = core.get(key, "")
    if not value:
        raise ParseError(
            f"{section.value} entry '{core.get('name')}' is missing required field '{key}'",
            line_number=start_line,
        )
    return value


def _build_archive(raw: dict[str, Any]) -> ArchiveEntry:
    section = SectionState.IN_ARCHIVES
    core, extra = _split_extra(section, raw["fields"])
    length_raw = core.get("content_length", "")
    content_length: int | None = None
    if length_raw:
        try:
            content_length = int(length_raw)
        except ValueError:
            raise ParseError(
                f"archive '{core['name']}' has non-integer content_length {length_raw!r}",
                line_number=raw["line_numbers"].get("content_length"),
            ) from None
        if content_length < 0:
            raise ParseError(
                f"archive '{core['name']}' has negative content_length",
                line_number=raw["line_numbers"].get("content_length"),
            )
    return ArchiveEntry(
        name=core["name"],
        url=_require(core, "url", section, raw["start_line"]),
        sha256=_normalize_sha(core.get("sha256", "TBD")),
        content_length=content_length,
        extra=extra,
        line_numbers=raw["line_numbers"],
    )


def _build_source(raw: dict[str, Any]) -> SourceEntry:
    section = SectionState.IN_SOURCES
    core, extra = _split_extra(section, raw["fields"])
    return SourceEntry(
        name=core["name"],
        type=(core.get("type") or "other").lower(),
        url=_require(core, "url", section, raw["start_line"]),
        sha256=_normalize_sha(core.get("sha256", "TBD")),
        extra=extra,
        line_numbers=raw["line_numbers"],
    )


def _build_key(raw: dict[str, Any]) -> GPGKeyEntry:
    core, extra = _split_extra(SectionState.IN_GPG_KEYS, raw["fields"])
    status = (core.get("status") or KeyStatus.ACTIVE.value).lower()
    try:
        return GPGKeyEntry(
            name=core["name"],
            fingerprint=core.get("fingerprint", "").replace(" ", ""),
            source=core.get("source", ""),
            status=KeyStatus(status),
            extra=extra,
            line_numbers=raw["line_numbers"],
        )
    except (ValueError, ValidationError):
        raise ParseError(
            f"gpg key '{core['name']}' has invalid status {status!r}",
            line_number=raw["line_numbers"].get("status", raw["start_line"]),
        ) from None


def _check_unique(section: SectionState, raws: list[dict[str, Any]]) -> None:
    seen: set[str] = set()
    for raw in raws:
        name = raw["fields"]["name"]
        if name in seen:
            raise ParseError(
                f"duplicate name '{name}' in '{section.value}'",
                line_number=raw["start_line"],
            )
        seen.add(name)


def parse_manifest(text: str, *, path: Path | None = None, fingerprint: str = "") -> Manifest:
    """Parse manifest *text* into a :class:`Manifest`.

    Raises ``ParseError`` (with a line number) on malformed sections or entries.
    """
    records = ManifestParser().parse(text)
    for section, raws in records.items():
        _check_unique(section, raws)

    manifest = Manifest(
        path=path,
        fingerprint=fingerprint or sha256_hex(text.encode("utf-8")),
        archives=tuple(_build_archive(r) for r in records[SectionState.IN_ARCHIVES]),
        sources=tuple(_build_source(r) for r in records[SectionState.IN_SOURCES]),
        gpg_keys=tuple(_build_key(r) for r in records[SectionState.IN_GPG_KEYS]),
    )
    logger.debug(
        "Parsed manifest: %d archives, %d sources, %d gpg keys",
        len(manifest.archives), len(manifest.sources), len(manifest.gpg_keys),
    )
    return manifest


class ManifestStore:
    """Loads and caches the manifest at *path*.

    Parameters
    ----------
    path:
        Path to the manifest file (``manifests/versions.yaml`` by default
        in the CLI).
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._manifest: Manifest | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Manifest:
        """Parse the manifest from disk, or return the already parsed copy."""
        if self._manifest is None:
            self._manifest = self.reload()
        return self._manifest

    def reload(self) -> Manifest:
        if not self._path.is_file():
            raise ParseError(f"manifest not found: {self._path}")
        raw = self._path.read_bytes()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"manifest {self._path} is not UTF-8: {exc}") from None
        self._manifest = parse_manifest(text, path=self._path, fingerprint=sha256_hex(raw))
        return self._manifest

    def read_text(self) -> str:
        """Raw manifest text, newlines untouched (used for line-preserving rewrites)."""
        with self._path.open("r", encoding="utf-8", newline="") as f:
            return f.read()


def load_manifest(path: Path) -> Manifest:
    """Read and parse the manifest at *path*; a missing file is a ``ParseError``."""
    return ManifestStore(path).load()
