"""Domain configuration for stdlib logging."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Optional

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def level(self) -> str:
        return str(self.section.get("level") or "INFO").upper()

    @cached_property
    def file(self) -> Optional[Path]:
        raw = self.section.get("file")
        if raw is None or not str(raw).strip():
            return None
        return Path(str(raw)).expanduser()


__all__ = ["LoggingConfig"]
