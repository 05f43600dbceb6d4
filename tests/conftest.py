"""Shared test fixtures for manifestwarden."""

from __future__ import annotations

import importlib
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from manifestwarden.cli.app import app
from manifestwarden.core.audit_ledger import AuditLedger
from manifestwarden.core.fetcher import HttpFetcher
from manifestwarden.core.gpg_validator import GnuPGExtractor, KeyExtractionError
from manifestwarden.core.hasher import sha256_hex
from manifestwarden.core.manifest_store import parse_manifest
from manifestwarden.core.offline_cache import OfflineCache
from manifestwarden.models.context import RunContext
from manifestwarden.models.manifest import Manifest

# ---------------------------------------------------------------------------
# Canonical artifacts served by the mock network
# ---------------------------------------------------------------------------

ALPHA_URL = "https://downloads.example.org/alpha.tar.gz"
BETA_URL = "https://downloads.example.org/beta.zip"
META_URL = "https://downloads.example.org/eclipse/release"
GAMMA_URL = "https://downloads.example.org/gamma.tgz"
DOTFILES_URL = "https://downloads.example.org/dotfiles.tar.gz"
VENDOR_KEY_URL = "https://keys.example.org/vendor.asc"

ALPHA_BYTES = b"\x1f\x8b\x08\x00" + b"alpha-archive-" * 70  # 984 bytes
BETA_BYTES = b"PK\x03\x04" + bytes(range(32, 127)) * 10
GAMMA_BYTES = b"\x1f\x8b\x08\x00gamma-release-tarball" * 8
DOTFILES_BYTES = b"\x1f\x8b\x08\x00dotfiles" * 16

VENDOR_FPR = "BC528686B50D79E339D3721CEB3E94ADBE1229CF"
VENDOR_KEY_BYTES = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\nvendor\n-----END PGP PUBLIC KEY BLOCK-----\n"

MANIFEST_TEMPLATE = """\
# Pinned toolchain manifest
version: 3
archives:
  - name: alpha-tool
    url: {alpha_url}
    sha256: {alpha_sha}
    content_length: {alpha_len}
  - name: beta-sdk
    url: {beta_url}
    sha256: {beta_sha}  # pinned on upgrade
    content_length: {beta_len}
    mirrors:
      - https://mirror-a.example.org/beta.zip
      - https://mirror-b.example.org/beta.zip
  - name: eclipse-release-2024-03
    url: {meta_url}
    sha256: {zeros}
  - name: gamma-cli
    url: {gamma_url}
    sha256: TBD
sources:
  - name: requests
    type: pypi
    url: https://pypi.org/project/requests
    sha256: TBD
  - name: dotfiles
    type: git-archive
    url: {dotfiles_url}
    sha256: TBD
gpg_keys:
  - name: vendor-signing
    fingerprint: {vendor_fpr}
    source: {vendor_key_url}
    status: active
  - name: future-repo
    fingerprint: PLACEHOLDER_FUTURE_REPO
    source: https://keys.example.org/future.asc
  - name: retired-key
    fingerprint: TBD
    source: https://keys.example.org/retired.asc
    status: inactive
"""


def render_manifest(**overrides: object) -> str:
    values: dict[str, object] = {
        "alpha_url": ALPHA_URL,
        "alpha_sha": sha256_hex(ALPHA_BYTES),
        "alpha_len": len(ALPHA_BYTES),
        "beta_url": BETA_URL,
        "beta_sha": sha256_hex(BETA_BYTES),
        "beta_len": len(BETA_BYTES),
        "meta_url": META_URL,
        "zeros": "0" * 64,
        "gamma_url": GAMMA_URL,
        "dotfiles_url": DOTFILES_URL,
        "vendor_fpr": VENDOR_FPR,
        "vendor_key_url": VENDOR_KEY_URL,
    }
    values.update(overrides)
    return MANIFEST_TEMPLATE.format(**values)


def default_routes() -> dict[str, bytes]:
    return {
        ALPHA_URL: ALPHA_BYTES,
        BETA_URL: BETA_BYTES,
        GAMMA_URL: GAMMA_BYTES,
        DOTFILES_URL: DOTFILES_BYTES,
        VENDOR_KEY_URL: VENDOR_KEY_BYTES,
    }


class MockNetwork:
    """Routes served through ``httpx.MockTransport``, recording every request."""

    def __init__(self, routes: dict[str, bytes] | None = None) -> None:
        self.routes: dict[str, bytes] = dict(default_routes() if routes is None else routes)
        self.head_lengths: dict[str, str] = {}  # url -> declared length override
        self.status: dict[str, int] = {}  # url -> forced status code
        self.timeouts: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append((request.method, url))
        if url in self.timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if url in self.status:
            return httpx.Response(self.status[url], request=request)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404, request=request)
        if request.method == "HEAD":
            length = self.head_lengths.get(url, str(len(body)))
            return httpx.Response(200, headers={"Content-Length": length}, request=request)
        return httpx.Response(200, content=body, request=request)

    def fetcher(self) -> HttpFetcher:
        client = httpx.Client(transport=httpx.MockTransport(self.handler))
        return HttpFetcher(client=client)

    def count(self, method: str | None = None) -> int:
        return sum(1 for m, _ in self.calls if method is None or m == method)


class FakeExtractor:
    """Fingerprint extractor keyed on raw key material (no gpg binary needed)."""

    def __init__(self, mapping: dict[bytes, str]) -> None:
        self._mapping = mapping
        self.calls = 0

    def extract(self, key_material: bytes) -> list[str]:
        self.calls += 1
        if key_material not in self._mapping:
            raise KeyExtractionError("no fingerprint found in key material")
        return [self._mapping[key_material]]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def manifest_text() -> str:
    """The canonical manifest text."""
    return render_manifest()


@pytest.fixture
def manifest(manifest_text: str) -> Manifest:
    return parse_manifest(manifest_text)


@pytest.fixture
def manifest_file(tmp_path: Path, manifest_text: str) -> Path:
    """The canonical manifest written to ``manifests/versions.yaml``."""
    path = tmp_path / "manifests" / "versions.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(manifest_text, encoding="utf-8")
    return path


@pytest.fixture
def network() -> MockNetwork:
    """A fresh mock network serving the canonical artifacts."""
    return MockNetwork()


@pytest.fixture
def make_cache(tmp_path: Path) -> Callable[..., OfflineCache]:
    """Factory fixture: an OfflineCache in a shared temp dir."""

    def _factory(
        fetcher: HttpFetcher | None = None,
        *,
        offline: bool = False,
        strict: bool = False,
        manifest_fingerprint: str = "",
    ) -> OfflineCache:
        context = RunContext(
            offline=offline, strict=strict, manifest_fingerprint=manifest_fingerprint,
        )
        return OfflineCache(tmp_path / "cache", fetcher=fetcher, context=context)

    return _factory


@pytest.fixture
def vendor_extractor() -> FakeExtractor:
    return FakeExtractor({VENDOR_KEY_BYTES: VENDOR_FPR})


@pytest.fixture
def ledger(tmp_path: Path) -> AuditLedger:
    """Provide a fresh AuditLedger in a temp state dir."""
    return AuditLedger(tmp_path / "state" / "ledger.jsonl")


# Environment variables that change WardenConfig; cleared for isolation.
WARDEN_ENV_VARS = (
    "CI", "STRICT_MODE", "OFFLINE_MODE", "CACHE_DIR", "LOG_JSONL",
    "MANIFESTWARDEN_STRICT_MODE", "MANIFESTWARDEN_OFFLINE_MODE", "MANIFESTWARDEN_CACHE_DIR",
    "MANIFESTWARDEN_CONCURRENCY", "MANIFESTWARDEN_MANIFEST_PATH", "MANIFESTWARDEN_LOG_JSONL",
    "MANIFESTWARDEN_LOG_LEVEL", "MANIFESTWARDEN_LEDGER_PATH", "MANIFESTWARDEN_BASELINE_PATH",
    "MANIFESTWARDEN_LEDGER_ENABLED",
)


@pytest.fixture
def warden_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Clear config env vars and run from *tmp_path* (so no stray .env is read)."""
    for name in WARDEN_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

_NETWORK_COMMANDS = ("verify", "lengths", "gpg", "fingerprint", "lock", "fetch")

Invoke = Callable[..., Any]


@pytest.fixture
def cli(
    monkeypatch: pytest.MonkeyPatch,
    warden_env: Path,
    manifest_file: Path,
    network: MockNetwork,
) -> Invoke:
    """Invoke the app from tmp_path with the mock network and a fake gpg."""
    monkeypatch.setenv("CACHE_DIR", str(warden_env / "cache"))
    monkeypatch.setenv("MANIFESTWARDEN_LOG_LEVEL", "ERROR")
    for module in _NETWORK_COMMANDS:
        monkeypatch.setattr(
            importlib.import_module(f"manifestwarden.cli.commands.{module}"),
            "make_fetcher",
            lambda config: network.fetcher(),
        )
    fake = FakeExtractor({VENDOR_KEY_BYTES: VENDOR_FPR})
    monkeypatch.setattr(GnuPGExtractor, "extract", lambda self, material: fake.extract(material))

    runner = CliRunner()

    def invoke(*args: str) -> Any:
        return runner.invoke(app, list(args))

    return invoke
