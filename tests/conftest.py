"""
Shared pytest fixtures for the ledger test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary sqlite data directories wired into the config singleton
- Connection managers and fully wired ``LedgerService`` instances
- Pre-funded money records for transfer tests

Every fixture is function scoped so each test gets a fresh database file.
"""

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from profundus_ledger.config import DatabaseSettings, use_test_database
from profundus_ledger.db.connection import ConnectionManager
from profundus_ledger.service import LedgerService
from tests.constants import ALICE, ALICE_BALANCE, BOB, BOB_BALANCE

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_data_dir() -> Generator[Path, None, None]:
    """
    Create a temporary data directory for the sqlite backend.

    The module-level config singleton points at this directory for the
    duration of the test, so code that builds ``LedgerService()`` without
    explicit settings (the CLI, for example) uses it too.

    Yields:
        Path to the temporary data directory

    Cleanup:
        Removes the directory after the test completes
    """
    temp_dir = Path(tempfile.mkdtemp())

    with use_test_database(temp_dir):
        yield temp_dir

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def db_settings(temp_data_dir: Path) -> DatabaseSettings:
    """Explicit sqlite settings rooted in the temporary data directory."""
    return DatabaseSettings(kind="sqlite", data_dir=str(temp_data_dir))


@pytest.fixture(scope="function")
def sqlite_path(db_settings: DatabaseSettings) -> Path:
    """Path of the sqlite file the test database lives in."""
    return db_settings.sqlite_path


@pytest.fixture(scope="function")
def manager(db_settings: DatabaseSettings) -> Generator[ConnectionManager, None, None]:
    """A connection manager that is disconnected after the test."""
    manager = ConnectionManager(db_settings)

    yield manager

    manager.disconnect()


@pytest.fixture(scope="function")
def service(db_settings: DatabaseSettings) -> Generator[LedgerService, None, None]:
    """
    A connected ``LedgerService`` with every table created.

    Yields:
        LedgerService bound to the temporary sqlite file
    """
    service = LedgerService(db_settings).open()

    yield service

    service.close()


@pytest.fixture(scope="function")
def funded_accounts(service: LedgerService) -> dict[str, int]:
    """
    Open two money records and give them known balances.

    Returns:
        Dict mapping account names to their starting balances
    """
    balances = {ALICE: ALICE_BALANCE, BOB: BOB_BALANCE}
    for name in balances:
        assert service.ledger.create_record(name)

    assert service.transfers.transfer(ALICE, ALICE_BALANCE, BOB, BOB_BALANCE)
    return balances
