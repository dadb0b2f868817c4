"""Domain configuration for server teardown timing."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class ShutdownConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "shutdown"

    @cached_property
    def escalation_seconds(self) -> float:
        """Grace period between the polite and the forceful kill."""
        return float(self.section.get("escalation_seconds", 2.0))

    @cached_property
    def force_wait_seconds(self) -> float:
        return float(self.section.get("force_wait_seconds", 1.0))

    @cached_property
    def settle_seconds(self) -> float:
        """Pause after a process-group kill so the port is released."""
        return float(self.section.get("settle_seconds", 0.5))

    @cached_property
    def tree_kill_settle_seconds(self) -> float:
        return float(self.section.get("tree_kill_settle_seconds", 1.0))


__all__ = ["ShutdownConfig"]
