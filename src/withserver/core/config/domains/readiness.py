"""Domain configuration for readiness polling."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class ReadinessConfig(BaseDomainConfig):
    """Bounds for the readiness loop.

    The loop stops at whichever of ``timeout_seconds`` or ``max_attempts``
    is reached first.
    """

    def _config_section(self) -> str:
        return "readiness"

    @cached_property
    def timeout_seconds(self) -> float:
        return float(self.section.get("timeout_seconds", 30.0))

    @cached_property
    def max_attempts(self) -> int:
        return int(self.section.get("max_attempts", 60))

    @cached_property
    def poll_interval_seconds(self) -> float:
        return float(self.section.get("poll_interval_seconds", 0.25))

    @cached_property
    def probe_timeout_seconds(self) -> float:
        return float(self.section.get("probe_timeout_seconds", 0.5))

    @cached_property
    def progress_every(self) -> int:
        return max(1, int(self.section.get("progress_every", 10)))


__all__ = ["ReadinessConfig"]
