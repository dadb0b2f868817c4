"""Domain-specific configuration accessors."""
from __future__ import annotations

from .layout import LayoutConfig
from .logging import LoggingConfig
from .readiness import ReadinessConfig
from .server import ServerConfig
from .shutdown import ShutdownConfig

__all__ = [
    "LayoutConfig",
    "LoggingConfig",
    "ReadinessConfig",
    "ServerConfig",
    "ShutdownConfig",
]
