"""Domain configuration for the served project layout."""
from __future__ import annotations

from functools import cached_property
from typing import List

from ..base import BaseDomainConfig


class LayoutConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "layout"

    @cached_property
    def index_file(self) -> str:
        return str(self.section.get("index_file") or "www/index.html")

    @cached_property
    def build_dir(self) -> str:
        return str(self.section.get("build_dir") or "dist")

    @cached_property
    def sources(self) -> List[str]:
        raw = self.section.get("sources")
        if not isinstance(raw, list):
            return ["www", "service-worker.js"]
        return [str(s) for s in raw]

    @cached_property
    def build_command(self) -> str:
        return str(self.section.get("build_command") or "npm run build-src")


__all__ = ["LayoutConfig"]
