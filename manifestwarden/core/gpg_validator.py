"""GPG fingerprint validator — pin a signing key before it is trusted.

For every active key in the manifest the key material is fetched from its
declared source, its fingerprint is extracted inside a throw-away keyring
(a fresh temporary ``GNUPGHOME``; the caller's keyring is never touched),
normalized to upper case and compared with the pinned value.

Outcomes: ``match``, ``mismatch``, ``placeholder`` (pin not set yet; the
key is not even fetched), ``error`` (download, corrupt cached copy or extraction failure) and
``skipped`` (inactive key).

``ensure_trusted`` is the gate callers use before adding a package
repository authenticated by one of these keys: anything but ``match``
raises ``TrustError``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from manifestwarden.core.errors import (
    IntegrityError,
    ParseError,
    TransportError,
    TrustError,
    WardenError,
)
from manifestwarden.core.offline_cache import OfflineCache
from manifestwarden.models.manifest import GPGKeyEntry, Manifest
from manifestwarden.models.reports import KeyCheck, KeyOutcome

logger = logging.getLogger(__name__)

DEFAULT_GPG_TIMEOUT_SECONDS = 30.0


class KeyExtractionError(WardenError):
    """gpg could not read a fingerprint out of the key material."""


def parse_colon_fingerprints(output: str) -> list[str]:
    """Return every fingerprint from ``gpg --with-colons`` output, in order.

    Field 10 of each ``fpr`` record holds the fingerprint; the first one is
    the primary key's.
    """
    fingerprints: list[str] = []
    for line in output.splitlines():
        if line.startswith("fpr:"):
            fields = line.split(":")
            if len(fields) > 9 and fields[9]:
                fingerprints.append(fields[9].upper())
    return fingerprints


@runtime_checkable
class FingerprintExtractor(Protocol):
    """Anything that turns raw key material into its fingerprints."""

    def extract(self, key_material: bytes) -> list[str]: ...


class GnuPGExtractor:
    """Extracts fingerprints with the ``gpg`` binary in an ephemeral keyring.

    Parameters
    ----------
    gpg_binary:
        Name or path of the gpg executable.
    timeout:
        Seconds before the gpg subprocess is abandoned.
    """

    def __init__(self, gpg_binary: str = "gpg", timeout: float = DEFAULT_GPG_TIMEOUT_SECONDS) -> None:
        self._gpg = gpg_binary
        self._timeout = timeout

    def extract(self, key_material: bytes) -> list[str]:
        with tempfile.TemporaryDirectory(prefix="manifestwarden-gnupg-") as home:
            os.chmod(home, 0o700)
            key_path = Path(home) / "key.asc"
            key_path.write_bytes(key_material)
            env = {**os.environ, "GNUPGHOME": home}
            cmd = [
                self._gpg, "--batch", "--no-tty", "--with-colons",
                "--show-keys", str(key_path),
            ]
            try:
                proc = subprocess.run(
                    cmd, capture_output=True, text=True, env=env,
                    timeout=self._timeout, check=False,
                )
            except FileNotFoundError:
                raise KeyExtractionError(f"gpg binary not found: {self._gpg}") from None
            except subprocess.TimeoutExpired:
                raise KeyExtractionError(f"gpg timed out after {self._timeout}s") from None

        if proc.returncode != 0:
            raise KeyExtractionError(
                f"gpg exited {proc.returncode}: {proc.stderr.strip()[:200]}"
            )
        fingerprints = parse_colon_fingerprints(proc.stdout)
        if not fingerprints:
            raise KeyExtractionError("no fingerprint found in key material")
        return fingerprints


class ComputedFingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    fingerprint: str = ""
    error: str = ""


class GpgFingerprintValidator:
    """Validates pinned GPG key fingerprints from the manifest.

    Parameters
    ----------
    manifest:
        The parsed manifest providing ``gpg_keys``.
    cache:
        Offline cache used to fetch key material.
    extractor:
        Fingerprint extractor; defaults to :class:`GnuPGExtractor`.
    """

    def __init__(
        self,
        manifest: Manifest,
        cache: OfflineCache,
        *,
        extractor: FingerprintExtractor | None = None,
    ) -> None:
        self._manifest = manifest
        self._cache = cache
        self._extractor = extractor or GnuPGExtractor()

    def select(self, name: str | None = None) -> list[GPGKeyEntry]:
        """All keys, or just *name*; an unknown name is a ``ParseError``."""
        if name is None:
            return list(self._manifest.gpg_keys)
        entry = self._manifest.gpg_key(name)
        if entry is None:
            raise ParseError(f"requested key name not found in gpg_keys: {name}")
        return [entry]

    def fingerprint_of(self, url: str) -> str:
        """Fetch key material from *url* and return its primary fingerprint."""
        material = self._cache.fetch_with_cache(url)
        return self._extractor.extract(material)[0].upper()

    def check_key(self, entry: GPGKeyEntry) -> KeyCheck:
        if not entry.is_active:
            logger.info("Skipping inactive key: %s", entry.name)
            return KeyCheck(name=entry.name, outcome=KeyOutcome.SKIPPED)
        if entry.is_placeholder:
            logger.warning("Key %s still has a placeholder fingerprint", entry.name)
            return KeyCheck(
                name=entry.name, outcome=KeyOutcome.PLACEHOLDER,
                expected=entry.fingerprint, detail="fingerprint not yet pinned",
            )
        if not entry.has_valid_pin:
            return KeyCheck(
                name=entry.name, outcome=KeyOutcome.ERROR, expected=entry.fingerprint,
                detail="pinned fingerprint is not 40 hex characters",
            )
        if not entry.source:
            return KeyCheck(
                name=entry.name, outcome=KeyOutcome.ERROR, expected=entry.fingerprint,
                detail="no key source URL",
            )

        try:
            actual = self.fingerprint_of(entry.source)
        except (TransportError, IntegrityError, KeyExtractionError) as exc:
            logger.error("Could not obtain fingerprint for %s: %s", entry.name, exc)
            return KeyCheck(
                name=entry.name, outcome=KeyOutcome.ERROR,
                expected=entry.fingerprint, detail=str(exc),
            )

        expected = entry.fingerprint.upper()
        if actual == expected:
            logger.info("Match: %s (%s)", entry.name, actual)
            return KeyCheck(name=entry.name, outcome=KeyOutcome.MATCH, expected=expected, actual=actual)
        logger.error("Mismatch: %s expected %s got %s", entry.name, expected, actual)
        return KeyCheck(name=entry.name, outcome=KeyOutcome.MISMATCH, expected=expected, actual=actual)

    def validate(self, name: str | None = None) -> list[KeyCheck]:
        """Check every selected key; failures are reported, never raised."""
        return [self.check_key(entry) for entry in self.select(name)]

    def ensure_trusted(self, name: str) -> KeyCheck:
        """Gate: return the check only if key *name* matches its pin.

        Raises ``TrustError`` for ``mismatch``, ``placeholder``, ``error`` and
        for inactive keys, which may not authenticate anything.
        """
        check = self.validate(name)[0]
        if check.outcome != KeyOutcome.MATCH:
            raise TrustError(
                f"refusing to trust key '{name}': {check.outcome.value}"
                + (f" (expected {check.expected}, got {check.actual})" if check.actual else "")
                + (f" ({check.detail})" if check.detail else ""),
                name=name,
                outcome=check.outcome,
            )
        return check


def compute_fingerprints(
    urls: list[str],
    cache: OfflineCache,
    extractor: FingerprintExtractor | None = None,
) -> list[ComputedFingerprint]:
    """Fetch each URL and report its upper-case primary fingerprint."""
    extractor = extractor or GnuPGExtractor()
    results: list[ComputedFingerprint] = []
    for url in urls:
        try:
            fpr = extractor.extract(cache.fetch_with_cache(url))[0].upper()
        except TransportError as exc:
            results.append(ComputedFingerprint(url=url, error=f"download: {exc}"))
            continue
        except IntegrityError as exc:
            results.append(ComputedFingerprint(url=url, error=f"cache: {exc}"))
            continue
        except KeyExtractionError as exc:
            results.append(ComputedFingerprint(url=url, error=f"parse: {exc}"))
            continue
        results.append(ComputedFingerprint(url=url, fingerprint=fpr))
    return results
