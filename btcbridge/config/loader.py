"""
btcbridge TOML Configuration Loader

Loads every section of config.toml at startup with environment variable
overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [bridge] owner        → BTCBRIDGE_OWNER
    [bridge] fee_rate     → BTCBRIDGE_FEE_RATE
    [bridge] max_deposit  → BTCBRIDGE_MAX_DEPOSIT
    [rpc] host            → BTCBRIDGE_RPC_HOST
    [rpc] port            → BTCBRIDGE_RPC_PORT
    [database] path       → BTCBRIDGE_DB_PATH
    [log] level           → BTCBRIDGE_LOG_LEVEL

Oracle and whitelist lists only seed a fresh deployment; once a state
database exists, the persisted maps win.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    try:
        import tomli  # type: ignore[no-redef]
    except ImportError:
        tomli = None  # type: ignore[assignment]

from ..constants import (
    DEFAULT_FEE_RATE,
    DEFAULT_MAX_DEPOSIT,
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
)
from ..bridge.fees import is_valid_fee_rate
from ..bridge.state import is_valid_max_deposit
from ..bridge.types import is_null_account

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class BridgeSectionConfig:
    """[bridge] section."""
    owner: str = ""
    fee_rate: int = DEFAULT_FEE_RATE
    max_deposit: int = DEFAULT_MAX_DEPOSIT
    paused: bool = False
    oracles: List[str] = field(default_factory=list)
    whitelist: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeSectionConfig":
        return cls(
            owner=data.get("owner", ""),
            fee_rate=data.get("fee_rate", DEFAULT_FEE_RATE),
            max_deposit=data.get("max_deposit", DEFAULT_MAX_DEPOSIT),
            paused=data.get("paused", False),
            oracles=list(data.get("oracles", [])),
            whitelist=list(data.get("whitelist", [])),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BTCBRIDGE_OWNER"):
            self.owner = v
        if v := os.environ.get("BTCBRIDGE_FEE_RATE"):
            self.fee_rate = int(v)
        if v := os.environ.get("BTCBRIDGE_MAX_DEPOSIT"):
            self.max_deposit = int(v)


@dataclass
class TokenConfig:
    """[token] section."""
    name: str = TOKEN_NAME
    symbol: str = TOKEN_SYMBOL
    decimals: int = TOKEN_DECIMALS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenConfig":
        return cls(
            name=data.get("name", TOKEN_NAME),
            symbol=data.get("symbol", TOKEN_SYMBOL),
            decimals=data.get("decimals", TOKEN_DECIMALS),
        )


@dataclass
class RPCSectionConfig:
    """[rpc] section."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8545
    admin_enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCSectionConfig":
        return cls(
            enabled=data.get("enabled", True),
            host=data.get("host", "127.0.0.1"),
            port=data.get("port", 8545),
            admin_enabled=data.get("admin_enabled", True),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BTCBRIDGE_RPC_HOST"):
            self.host = v
        if v := os.environ.get("BTCBRIDGE_RPC_PORT"):
            self.port = int(v)


@dataclass
class DatabaseConfig:
    """[database] section."""
    path: str = "data/btcbridge.db"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        return cls(path=data.get("path", "data/btcbridge.db"))

    def apply_env(self) -> None:
        if v := os.environ.get("BTCBRIDGE_DB_PATH"):
            self.path = v


@dataclass
class LogConfig:
    """[log] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("BTCBRIDGE_LOG_LEVEL"):
            self.level = v.upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class BridgeConfig:
    """Complete bridge configuration loaded from config.toml."""
    bridge: BridgeSectionConfig = field(default_factory=BridgeSectionConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    rpc: RPCSectionConfig = field(default_factory=RPCSectionConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
        return cls(
            bridge=BridgeSectionConfig.from_dict(data.get("bridge", {})),
            token=TokenConfig.from_dict(data.get("token", {})),
            rpc=RPCSectionConfig.from_dict(data.get("rpc", {})),
            database=DatabaseConfig.from_dict(data.get("database", {})),
            log=LogConfig.from_dict(data.get("log", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "BridgeConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            BridgeConfig instance
        """
        if tomli is None:
            raise ImportError(
                "tomli is required for TOML config loading. "
                "Install it: pip install tomli"
            )

        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.bridge.apply_env()
        self.rpc.apply_env()
        self.database.apply_env()
        self.log.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ValueError: on invalid config
        """
        owner = self.bridge.owner
        if is_null_account(owner):
            raise ValueError("bridge.owner must be set (or BTCBRIDGE_OWNER)")
        if not is_valid_fee_rate(self.bridge.fee_rate):
            raise ValueError(f"bridge.fee_rate must be in [0, 100), got {self.bridge.fee_rate}")
        if not is_valid_max_deposit(self.bridge.max_deposit):
            raise ValueError(f"Invalid bridge.max_deposit: {self.bridge.max_deposit}")
        for label, accounts in (("oracles", self.bridge.oracles), ("whitelist", self.bridge.whitelist)):
            for account in accounts:
                if is_null_account(account):
                    raise ValueError(f"bridge.{label} contains a null account")
                # The owner-gated setters reject the owner as their own target.
                if account == owner:
                    raise ValueError(f"bridge.{label} cannot contain the owner account")
        if not self.token.name or not self.token.symbol:
            raise ValueError("token.name and token.symbol must be non-empty")
        if not 0 <= self.token.decimals <= 18:
            raise ValueError(f"token.decimals must be 0-18, got {self.token.decimals}")
        if not 1 <= self.rpc.port <= 65535:
            raise ValueError(f"Invalid rpc.port: {self.rpc.port}")
        if not self.database.path:
            raise ValueError("database.path must be set")
        if self.log.level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "bridge": {
                "owner": self.bridge.owner,
                "fee_rate": self.bridge.fee_rate,
                "max_deposit": self.bridge.max_deposit,
                "paused": self.bridge.paused,
                "oracles": list(self.bridge.oracles),
                "whitelist": list(self.bridge.whitelist),
            },
            "token": {
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
            },
            "rpc": {
                "enabled": self.rpc.enabled,
                "host": self.rpc.host,
                "port": self.rpc.port,
                "admin_enabled": self.rpc.admin_enabled,
            },
            "database": {
                "path": self.database.path,
            },
            "log": {
                "level": self.log.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> BridgeConfig:
    """
    Load bridge configuration.

    Resolution order:
        1. Explicit *path* argument
        2. BTCBRIDGE_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("BTCBRIDGE_CONFIG", "config.toml")

    return BridgeConfig.from_file(path)
