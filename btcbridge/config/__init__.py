"""
btcbridge Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    BridgeConfig,
    BridgeSectionConfig,
    TokenConfig,
    RPCSectionConfig,
    DatabaseConfig,
    LogConfig,
    load_config,
)

__all__ = [
    "BridgeConfig",
    "BridgeSectionConfig",
    "TokenConfig",
    "RPCSectionConfig",
    "DatabaseConfig",
    "LogConfig",
    "load_config",
]
