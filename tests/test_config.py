"""Tests for profundus_ledger.config loading and logging setup."""

import configparser
import json
import logging
from unittest.mock import patch

import pytest

from profundus_ledger.config import (
    PROJECT_ROOT,
    DatabaseSettings,
    LedgerConfig,
    LoggingSettings,
    _JsonFormatter,
    _load_from_ini,
    config,
    configure_logging,
    load_config,
    use_test_database,
)


@pytest.mark.unit
def test_defaults():
    cfg = LedgerConfig()

    assert cfg.database.kind == "sqlite"
    assert cfg.database.address == "localhost:3306"
    assert cfg.database.max_reconnects == 10
    assert cfg.logging.level == "INFO"


@pytest.mark.unit
def test_database_env_overrides():
    env = {
        "PROFUNDUS_DB_KIND": "MySQL",
        "PROFUNDUS_DB_ADDRESS": "db.example.org:3307",
        "PROFUNDUS_DB_NAME": "ledger",
        "PROFUNDUS_DB_USER": "ledger_user",
        "PROFUNDUS_DB_PASSWORD": "secret",
        "PROFUNDUS_DATA_DIR": "/tmp/profundus",
        "PROFUNDUS_LOG_LEVEL": "debug",
    }
    with patch.dict("os.environ", env):
        cfg = load_config()

    assert cfg.database.kind == "mysql"
    assert cfg.database.address == "db.example.org:3307"
    assert cfg.database.name == "ledger"
    assert cfg.database.username == "ledger_user"
    assert cfg.database.password == "secret"
    assert cfg.database.data_dir == "/tmp/profundus"
    assert cfg.logging.level == "DEBUG"


@pytest.mark.unit
def test_ini_sections_are_loaded():
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "database": {
                "kind": "MYSQL",
                "address": "10.0.0.5",
                "name": "profundus_test",
                "username": "svc",
                "max_reconnects": "3",
            },
            "logging": {"level": "warning", "format": "json"},
        }
    )

    cfg = LedgerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.database.kind == "mysql"
    assert cfg.database.address == "10.0.0.5"
    assert cfg.database.name == "profundus_test"
    assert cfg.database.username == "svc"
    assert cfg.database.password == ""
    assert cfg.database.max_reconnects == 3
    assert cfg.logging.level == "WARNING"
    assert cfg.logging.format == "json"


@pytest.mark.unit
def test_ini_unknown_log_format_is_ignored():
    parser = configparser.ConfigParser()
    parser.read_dict({"logging": {"format": "xml"}})

    cfg = LedgerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.logging.format == "detailed"


@pytest.mark.unit
def test_relative_data_dir_resolves_against_project_root():
    settings = DatabaseSettings(data_dir="data")

    assert settings.absolute_data_dir == PROJECT_ROOT / "data"
    assert settings.sqlite_path == PROJECT_ROOT / "data" / "database.db"


@pytest.mark.unit
def test_use_test_database_restores_settings(tmp_path):
    config.database.kind = "mysql"
    original_dir = config.database.data_dir
    try:
        with use_test_database(tmp_path) as db_path:
            assert db_path == tmp_path / "database.db"
            assert config.database.kind == "sqlite"
            assert config.database.data_dir == str(tmp_path)

        assert config.database.kind == "mysql"
        assert config.database.data_dir == original_dir
    finally:
        config.database.kind = "sqlite"


@pytest.mark.unit
def test_json_formatter_emits_one_object():
    record = logging.LogRecord(
        "profundus_ledger.test", logging.WARNING, __file__, 1, "rolled back %s", ("tx",), None
    )

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "profundus_ledger.test"
    assert payload["message"] == "rolled back tx"


@pytest.mark.unit
def test_configure_logging_sets_root_level():
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, root.handlers[:]
    try:
        configure_logging(LoggingSettings(level="ERROR", format="simple"))
        assert root.level == logging.ERROR
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
