"""withserver configuration system.

Usage:
    from withserver.core.config import ConfigManager
    from withserver.core.config.domains import ServerConfig

    config = ConfigManager(repo_root=Path("/path/to/project")).load_config()
    server = ServerConfig(config)
    print(server.port)
"""
from __future__ import annotations

from .base import BaseDomainConfig
from .manager import ENV_PREFIX, PROJECT_CONFIG_DIRNAME, ConfigManager
from .domains import (
    LayoutConfig,
    LoggingConfig,
    ReadinessConfig,
    ServerConfig,
    ShutdownConfig,
)

__all__ = [
    "ConfigManager",
    "BaseDomainConfig",
    "ENV_PREFIX",
    "PROJECT_CONFIG_DIRNAME",
    "LayoutConfig",
    "LoggingConfig",
    "ReadinessConfig",
    "ServerConfig",
    "ShutdownConfig",
]
