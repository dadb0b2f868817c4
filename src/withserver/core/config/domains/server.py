"""Domain configuration for the supervised server process."""
from __future__ import annotations

from functools import cached_property
from typing import List

from withserver.core.exceptions import ConfigError

from ..base import BaseDomainConfig


class ServerConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "server"

    @cached_property
    def command(self) -> str:
        return str(self.section.get("command") or "npx http-server")

    @cached_property
    def args(self) -> List[str]:
        return [str(a) for a in (self.section.get("args") or [])]

    @cached_property
    def host(self) -> str:
        return str(self.section.get("host") or "127.0.0.1")

    @cached_property
    def port(self) -> int:
        return int(self.section.get("port", 8080))

    @cached_property
    def grace_seconds(self) -> float:
        return float(self.section.get("grace_seconds", 1.5))

    @cached_property
    def success_exit_codes(self) -> List[int]:
        codes = self.section.get("success_exit_codes")
        if not isinstance(codes, list):
            return [0]
        return [int(c) for c in codes]

    @cached_property
    def ready_markers(self) -> List[str]:
        return [str(m) for m in (self.section.get("ready_markers") or [])]

    @cached_property
    def port_in_use_markers(self) -> List[str]:
        return [str(m) for m in (self.section.get("port_in_use_markers") or [])]

    def formatted_args(self) -> List[str]:
        """Server args with ``{port}``/``{host}`` placeholders substituted.

        Literal braces must be doubled (``{{`` / ``}}``).
        """
        fmt = {"port": str(self.port), "host": self.host}
        out: List[str] = []
        for arg in self.args:
            try:
                out.append(arg.format(**fmt))
            except (KeyError, IndexError, ValueError, AttributeError) as exc:
                raise ConfigError(
                    f"Invalid server argument {arg!r}: only {{port}} and {{host}} may be substituted; "
                    "escape literal braces as {{ and }}",
                    context={"arg": arg, "error": str(exc)},
                ) from exc
        return out


__all__ = ["ServerConfig"]
