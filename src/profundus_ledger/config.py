"""
Ledger configuration management.

This module handles loading and accessing ledger configuration from multiple
sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/ledger.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The LedgerConfig
dataclass provides typed access to all settings.

Usage:
    from profundus_ledger.config import config

    print(config.database.kind)
    print(config.database.sqlite_path)

Environment Variable Mapping:
    PROFUNDUS_DB_KIND      -> database.kind
    PROFUNDUS_DB_ADDRESS   -> database.address
    PROFUNDUS_DB_NAME      -> database.name
    PROFUNDUS_DB_USER      -> database.username
    PROFUNDUS_DB_PASSWORD  -> database.password
    PROFUNDUS_DATA_DIR     -> database.data_dir
    PROFUNDUS_LOG_LEVEL    -> logging.level
"""

import configparser
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "ledger.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "ledger.example.ini"

SQLITE_FILENAME = "database.db"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class DatabaseSettings:
    """Database connection configuration."""

    kind: str = "sqlite"
    address: str = "localhost:3306"
    name: str = "profundus"
    username: str = ""
    password: str = ""
    data_dir: str = "data"

    # Reconnect attempts made when opening a MySQL connection.
    max_reconnects: int = 10

    @property
    def absolute_data_dir(self) -> Path:
        """Get absolute path to the data directory."""
        p = Path(self.data_dir)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p

    @property
    def sqlite_path(self) -> Path:
        """Path of the sqlite database file inside the data directory."""
        return self.absolute_data_dir / SQLITE_FILENAME


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class LedgerConfig:
    """
    Complete ledger configuration.

    Access via the module-level `config` singleton, or build one explicitly
    and pass it to ``LedgerService``.
    """

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _load_from_ini(parser: configparser.ConfigParser, cfg: LedgerConfig) -> None:
    """Load configuration from parsed INI file into LedgerConfig."""
    if parser.has_section("database"):
        for option in ("kind", "address", "name", "username", "password", "data_dir"):
            if parser.has_option("database", option):
                setattr(cfg.database, option, parser.get("database", option))
        if parser.has_option("database", "max_reconnects"):
            cfg.database.max_reconnects = parser.getint("database", "max_reconnects")
        cfg.database.kind = cfg.database.kind.lower()

    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: LedgerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_kind := os.getenv("PROFUNDUS_DB_KIND"):
        cfg.database.kind = env_kind.lower()
    if env_address := os.getenv("PROFUNDUS_DB_ADDRESS"):
        cfg.database.address = env_address
    if env_name := os.getenv("PROFUNDUS_DB_NAME"):
        cfg.database.name = env_name
    if env_user := os.getenv("PROFUNDUS_DB_USER"):
        cfg.database.username = env_user
    if env_password := os.getenv("PROFUNDUS_DB_PASSWORD"):
        cfg.database.password = env_password
    if env_data_dir := os.getenv("PROFUNDUS_DATA_DIR"):
        cfg.database.data_dir = env_data_dir

    if env_log := os.getenv("PROFUNDUS_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config() -> LedgerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/ledger.ini
        3. config/ledger.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        LedgerConfig: Fully populated configuration object.
    """
    cfg = LedgerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "LedgerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Managers that already
    resolved their connection target keep the old values.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# LOGGING
# =============================================================================

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
}


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Apply logging level and format settings to the root logger."""
    settings = settings or config.logging
    handler = logging.StreamHandler()
    if settings.format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_FORMATS[settings.format]))
    logging.basicConfig(level=settings.level, handlers=[handler], force=True)


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for pointing the sqlite backend at a temporary directory.

    Usage:
        from profundus_ledger.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path):
                service = LedgerService()
                ...

    Args:
        data_dir: Directory that will hold ``database.db``
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)
        self.original_dir: str | None = None
        self.original_kind: str | None = None

    def __enter__(self) -> Path:
        """Switch the config singleton to sqlite in ``data_dir``."""
        self.original_dir = config.database.data_dir
        self.original_kind = config.database.kind
        config.database.data_dir = str(self.data_dir)
        config.database.kind = "sqlite"
        return self.data_dir / SQLITE_FILENAME

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore the original database settings."""
        if self.original_dir is not None:
            config.database.data_dir = self.original_dir
        if self.original_kind is not None:
            config.database.kind = self.original_kind
        return None
