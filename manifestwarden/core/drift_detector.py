"""Drift detection — compares a recorded baseline with the live manifest.

Per artifact name, one of:

- ``new_in_manifest``: present now, absent from the baseline
- ``missing_in_manifest``: in the baseline, absent now
- ``hash_change``: sha256 differs (version bump or tamper; needs a human)
- ``size_change``: content_length differs while the hash is unchanged,
  an anomaly that warrants investigation
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from manifestwarden.core.errors import DriftDetected
from manifestwarden.models.baseline import BaselineSnapshot
from manifestwarden.models.manifest import ArchiveEntry, is_concrete_sha256
from manifestwarden.models.reports import DriftEvent, DriftKind, DriftReport

logger = logging.getLogger(__name__)


class DriftDetector:
    """Diffs a baseline snapshot against the manifest's archives.

    Parameters
    ----------
    baseline:
        The recorded snapshot.
    """

    def __init__(self, baseline: BaselineSnapshot) -> None:
        self._baseline = baseline

    @property
    def baseline(self) -> BaselineSnapshot:
        return self._baseline

    def detect(
        self,
        archives: Iterable[ArchiveEntry],
        *,
        strict: bool = False,
    ) -> DriftReport:
        """Return every drift event, in manifest order then baseline order.

        Raises ``DriftDetected`` if *strict* is True and any drift exists.
        Live entries that the baseline could never have recorded (placeholder
        or unresolved checksum) are not reported as new.
        """
        recorded = self._baseline.by_name()
        seen: set[str] = set()
        events: list[DriftEvent] = []

        for entry in archives:
            base = recorded.get(entry.name)
            if base is None:
                if is_concrete_sha256(entry.sha256) and not entry.is_exempt:
                    events.append(DriftEvent(
                        kind=DriftKind.NEW_IN_MANIFEST, name=entry.name, current=entry.sha256,
                    ))
                continue
            seen.add(entry.name)
            if base.sha256 != entry.sha256:
                events.append(DriftEvent(
                    kind=DriftKind.HASH_CHANGE, name=entry.name,
                    baseline=base.sha256, current=entry.sha256,
                ))
            elif (
                base.content_length is not None
                and entry.content_length is not None
                and base.content_length != entry.content_length
            ):
                events.append(DriftEvent(
                    kind=DriftKind.SIZE_CHANGE, name=entry.name,
                    baseline=base.content_length, current=entry.content_length,
                ))

        for name in self._baseline.names():
            if name not in seen:
                events.append(DriftEvent(kind=DriftKind.MISSING_IN_MANIFEST, name=name))

        report = DriftReport(events=tuple(events))
        for event in report.events:
            logger.warning(
                "%s %s baseline=%s current=%s",
                event.kind.value, event.name, event.baseline, event.current,
            )
        if strict and report.drift:
            raise DriftDetected(report)
        return report
