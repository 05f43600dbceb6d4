"""manifestwarden: supply-chain integrity for a pinned dev-environment manifest.

  - Manifest parsing (archives, sources, gpg_keys) with line tracking
  - Quick (size probe) and full (download + hash) archive verification
  - Offline, URL-keyed artifact cache with staleness warnings
  - GPG fingerprint pinning in an ephemeral keyring
  - Checksum policy (report and strict modes)
  - Baseline snapshots and drift detection
  - Line-preserving checksum locking
  - Append-only, hash-chained audit ledger
"""

__version__ = "0.1.0"
__description__ = "Supply-chain integrity checks for a pinned dev-environment manifest"

from manifestwarden.core.audit_ledger import AuditLedger
from manifestwarden.core.manifest_store import ManifestStore, parse_manifest
from manifestwarden.cli.app import app as cli

__all__ = ["AuditLedger", "ManifestStore", "parse_manifest", "cli", "__version__"]
