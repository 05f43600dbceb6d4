"""Unit tests for the Manifest Store — section parsing, flushing and errors."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import ALPHA_BYTES, BETA_BYTES, VENDOR_FPR
from manifestwarden.core.errors import ExitCode, ParseError
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.manifest_store import (
    ManifestStore,
    clean_value,
    load_manifest,
    parse_manifest,
)
from manifestwarden.models.manifest import KeyStatus


class TestSections:
    def test_all_sections_parsed(self, manifest):
        assert [a.name for a in manifest.archives] == [
            "alpha-tool", "beta-sdk", "eclipse-release-2024-03", "gamma-cli",
        ]
        assert [s.name for s in manifest.sources] == ["requests", "dotfiles"]
        assert [k.name for k in manifest.gpg_keys] == ["vendor-signing", "future-repo", "retired-key"]

    def test_archive_fields(self, manifest):
        alpha = manifest.archive("alpha-tool")
        assert alpha.sha256 == sha256_hex(ALPHA_BYTES)
        assert alpha.content_length == len(ALPHA_BYTES)

    def test_inline_comment_stripped(self, manifest):
        assert manifest.archive("beta-sdk").sha256 == sha256_hex(BETA_BYTES)

    def test_nested_list_folded_into_extra(self, manifest):
        beta = manifest.archive("beta-sdk")
        assert beta.extra["mirrors"] == (
            "https://mirror-a.example.org/beta.zip,https://mirror-b.example.org/beta.zip"
        )

    def test_unresolved_and_exempt(self, manifest):
        assert manifest.archive("gamma-cli").is_unresolved
        assert manifest.archive("eclipse-release-2024-03").is_exempt
        assert manifest.archive("eclipse-release-2024-03").content_length is None

    def test_source_types(self, manifest):
        assert manifest.source("requests").type == "pypi"
        assert manifest.source("dotfiles").type == "git-archive"

    def test_gpg_keys(self, manifest):
        vendor = manifest.gpg_key("vendor-signing")
        assert vendor.fingerprint == VENDOR_FPR
        assert vendor.has_valid_pin
        assert manifest.gpg_key("future-repo").is_placeholder
        assert manifest.gpg_key("future-repo").status == KeyStatus.ACTIVE
        assert manifest.gpg_key("retired-key").status == KeyStatus.INACTIVE

    def test_line_numbers_recorded(self, manifest_text, manifest):
        gamma = manifest.archive("gamma-cli")
        line = manifest_text.splitlines()[gamma.line_numbers["sha256"] - 1]
        assert line.strip() == "sha256: TBD"


class TestFlushing:
    def test_last_entry_of_last_section_not_dropped(self):
        text = "gpg_keys:\n  - name: only\n    fingerprint: TBD\n    source: https://k"
        manifest = parse_manifest(text)
        assert [k.name for k in manifest.gpg_keys] == ["only"]

    def test_section_end_flushes_entry(self):
        text = (
            "archives:\n"
            "  - name: a\n"
            "    url: https://x/a\n"
            "other:\n"
            "  key: value\n"
            "sources:\n"
            "  - name: s\n"
            "    url: https://x/s\n"
        )
        manifest = parse_manifest(text)
        assert [a.name for a in manifest.archives] == ["a"]
        assert [s.name for s in manifest.sources] == ["s"]

    def test_unknown_sections_ignored(self):
        text = "metadata:\n  owner: platform\n  - weird: item\narchives: []\n"
        manifest = parse_manifest(text)
        assert manifest.archives == ()

    def test_crlf_line_endings(self):
        text = "archives:\r\n  - name: a\r\n    url: https://x/a\r\n    sha256: TBD\r\n"
        manifest = parse_manifest(text)
        assert manifest.archive("a").sha256 == "TBD"

    def test_uppercase_sha_normalized(self):
        digest = sha256_hex(b"x")
        text = f"archives:\n  - name: a\n    url: https://x/a\n    sha256: {digest.upper()}\n"
        assert parse_manifest(text).archive("a").sha256 == digest

    def test_quoted_values(self):
        text = 'archives:\n  - name: "quoted"\n    url: \'https://x/a # not a comment\'\n'
        archive = parse_manifest(text).archive("quoted")
        assert archive.url == "https://x/a # not a comment"


class TestErrors:
    def test_field_before_entry(self):
        with pytest.raises(ParseError, match="line 2"):
            parse_manifest("archives:\n    url: https://x\n")

    def test_missing_url(self):
        with pytest.raises(ParseError, match="missing required field 'url'"):
            parse_manifest("archives:\n  - name: a\n    sha256: TBD\n")

    def test_bad_content_length(self):
        with pytest.raises(ParseError) as exc_info:
            parse_manifest("archives:\n  - name: a\n    url: u\n    content_length: big\n")
        assert exc_info.value.line_number == 4
        assert exc_info.value.exit_code == ExitCode.CONFIG_ERROR

    def test_duplicate_names(self):
        text = "archives:\n  - name: a\n    url: u\n  - name: a\n    url: v\n"
        with pytest.raises(ParseError, match="duplicate name 'a'"):
            parse_manifest(text)

    def test_invalid_key_status(self):
        text = "gpg_keys:\n  - name: k\n    status: maybe\n"
        with pytest.raises(ParseError, match="invalid status"):
            parse_manifest(text)

    def test_inline_section_value_rejected(self):
        with pytest.raises(ParseError, match="block list"):
            parse_manifest("archives: something\n")

    def test_misaligned_field(self):
        text = "archives:\n  - name: a\n   url: u\n"
        with pytest.raises(ParseError, match="not aligned"):
            parse_manifest(text)


class TestCleanValue:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("abc  # note", "abc"),
            ("# only a comment", ""),
            ('"a # b"', "a # b"),
            (None, ""),
            ("  spaced  ", "spaced"),
        ],
    )
    def test_clean_value(self, raw, expected):
        assert clean_value(raw) == expected


class TestManifestStore:
    def test_load_caches_and_fingerprints(self, manifest_file: Path):
        store = ManifestStore(manifest_file)
        first = store.load()
        assert store.load() is first
        assert first.fingerprint == sha256_hex(manifest_file.read_bytes())
        assert first.path == manifest_file

    def test_reload_picks_up_changes(self, manifest_file: Path):
        store = ManifestStore(manifest_file)
        before = store.load().fingerprint
        manifest_file.write_text(manifest_file.read_text() + "\n# edited\n")
        assert store.reload().fingerprint != before

    def test_missing_manifest(self, tmp_path: Path):
        with pytest.raises(ParseError, match="manifest not found"):
            ManifestStore(tmp_path / "nope.yaml").load()

    def test_read_text_preserves_crlf(self, tmp_path: Path):
        path = tmp_path / "m.yaml"
        path.write_bytes(b"archives:\r\n  - name: a\r\n    url: u\r\n")
        assert "\r\n" in ManifestStore(path).read_text()

    def test_load_manifest_helper(self, manifest_file: Path, tmp_path: Path):
        assert load_manifest(manifest_file).archive("alpha-tool").sha256 == sha256_hex(ALPHA_BYTES)
        with pytest.raises(ParseError) as exc_info:
            load_manifest(tmp_path / "absent.yaml")
        assert exc_info.value.exit_code == ExitCode.CONFIG_ERROR
