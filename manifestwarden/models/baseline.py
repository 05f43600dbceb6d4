"""Baseline snapshot model — immutable record of archive digests at a point in time."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BaselineEntry(BaseModel):
    """One archive as captured in a baseline snapshot."""

    model_config = ConfigDict(frozen=True)

    name: str
    sha256: str
    content_length: int | None = Field(default=None, ge=0)


class BaselineSnapshot(BaseModel):
    """Ordered, immutable collection of baseline entries.

    Superseded only by deliberate regeneration; never edited in place.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[BaselineEntry, ...] = ()

    def by_name(self) -> dict[str, BaselineEntry]:
        return {e.name: e for e in self.entries}

    def names(self) -> list[str]:
        return [e.name for e in self.entries]
