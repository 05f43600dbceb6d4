"""Explicit run context passed into each component.

Replaces process-wide "detected platform" state: callers build one
``RunContext`` and hand it to the components that need it.
"""

from __future__ import annotations

import platform

from pydantic import BaseModel, ConfigDict, Field


def detect_platform() -> str:
    """Return a short platform tag: ``linux``, ``darwin``, ``windows`` or ``wsl``."""
    system = platform.system().lower()
    if system == "linux" and "microsoft" in platform.release().lower():
        return "wsl"
    return system or "unknown"


class RunContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str = Field(default_factory=detect_platform)
    offline: bool = False
    strict: bool = False
    manifest_fingerprint: str = ""
