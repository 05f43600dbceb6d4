"""Adversarial tests — GPG key substitution against fingerprint pins.

The key server (or a man in the middle) controls the key material served
at each ``source`` URL.  A key is only trusted when its primary
fingerprint equals the full 40-character pin in the manifest.
"""

from __future__ import annotations

import pytest

from conftest import VENDOR_FPR, VENDOR_KEY_BYTES, VENDOR_KEY_URL, FakeExtractor, render_manifest
from manifestwarden.core.errors import TrustError
from manifestwarden.core.gpg_validator import GpgFingerprintValidator
from manifestwarden.core.manifest_store import parse_manifest
from manifestwarden.models.reports import KeyOutcome, key_checks_exit_code

ATTACKER_KEY = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\nmallory\n-----END PGP PUBLIC KEY BLOCK-----\n"
ATTACKER_FPR = "0BADC0DE" * 5


class _PrimaryPlusSubkey:
    """Key material whose subkey carries the pinned fingerprint."""

    def extract(self, key_material: bytes) -> list[str]:
        return [ATTACKER_FPR, VENDOR_FPR]


def _validator(manifest, make_cache, network, extractor) -> GpgFingerprintValidator:
    return GpgFingerprintValidator(manifest, make_cache(network.fetcher()), extractor=extractor)


class TestKeySubstitution:
    def test_swapped_key_material(self, manifest, make_cache, network):
        network.routes[VENDOR_KEY_URL] = ATTACKER_KEY
        extractor = FakeExtractor({VENDOR_KEY_BYTES: VENDOR_FPR, ATTACKER_KEY: ATTACKER_FPR})
        validator = _validator(manifest, make_cache, network, extractor)
        check = validator.validate("vendor-signing")[0]
        assert check.outcome == KeyOutcome.MISMATCH
        assert check.actual == ATTACKER_FPR
        with pytest.raises(TrustError, match="mismatch"):
            validator.ensure_trusted("vendor-signing")

    def test_pin_on_subkey_does_not_count(self, manifest, make_cache, network):
        validator = _validator(manifest, make_cache, network, _PrimaryPlusSubkey())
        assert validator.validate("vendor-signing")[0].outcome == KeyOutcome.MISMATCH

    def test_short_key_id_pin_rejected(self, make_cache, network, vendor_extractor):
        manifest = parse_manifest(render_manifest(vendor_fpr=VENDOR_FPR[-16:]))
        validator = _validator(manifest, make_cache, network, vendor_extractor)
        check = validator.validate("vendor-signing")[0]
        assert check.outcome == KeyOutcome.ERROR
        assert "40 hex" in check.detail
        assert network.count() == 0
        assert key_checks_exit_code([check]) == 2


class TestUnpinnedKeys:
    def test_placeholder_never_trusted(self, manifest, make_cache, network, vendor_extractor):
        validator = _validator(manifest, make_cache, network, vendor_extractor)
        with pytest.raises(TrustError) as exc_info:
            validator.ensure_trusted("future-repo")
        assert exc_info.value.outcome == KeyOutcome.PLACEHOLDER
        assert network.count() == 0

    def test_inactive_key_with_valid_pin_refused(self, make_cache, network, vendor_extractor):
        text = render_manifest().replace(
            "    fingerprint: TBD\n    source: https://keys.example.org/retired.asc",
            f"    fingerprint: {VENDOR_FPR}\n    source: {VENDOR_KEY_URL}",
        )
        validator = _validator(parse_manifest(text), make_cache, network, vendor_extractor)
        with pytest.raises(TrustError) as exc_info:
            validator.ensure_trusted("retired-key")
        assert exc_info.value.outcome == KeyOutcome.SKIPPED

    def test_unreachable_key_is_not_a_match(self, manifest, make_cache, network, vendor_extractor):
        network.timeouts.add(VENDOR_KEY_URL)
        validator = _validator(manifest, make_cache, network, vendor_extractor)
        check = validator.validate("vendor-signing")[0]
        assert check.outcome == KeyOutcome.ERROR
        with pytest.raises(TrustError):
            validator.ensure_trusted("vendor-signing")
