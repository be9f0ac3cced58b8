"""Tests for atomic two-party transfers."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from unittest.mock import patch

import pytest

from profundus_ledger.db.errors import MissingRecordFailure, TransactionFailure
from tests.constants import ALICE, ALICE_BALANCE, BOB, BOB_BALANCE, CAROL


def _committed_balances(sqlite_path) -> dict[str, int]:
    with closing(sqlite3.connect(str(sqlite_path))) as other:
        return dict(other.execute("SELECT name, amount FROM money").fetchall())


@pytest.mark.unit
@pytest.mark.db
def test_transfer_sets_both_balances(service, funded_accounts, sqlite_path):
    outcome = service.transfers.transfer(ALICE, 70, BOB, 80)

    assert outcome.ok
    assert outcome.rows_affected == 2
    assert _committed_balances(sqlite_path) == {ALICE: 70, BOB: 80}


@pytest.mark.unit
@pytest.mark.db
def test_transfer_to_missing_partner_changes_nothing(service, funded_accounts, sqlite_path):
    outcome = service.transfers.transfer(ALICE, 0, CAROL, ALICE_BALANCE)

    assert not outcome
    assert isinstance(outcome.error, MissingRecordFailure)
    assert _committed_balances(sqlite_path) == {ALICE: ALICE_BALANCE, BOB: BOB_BALANCE}
    assert service.ledger.load_amount(ALICE).amount == ALICE_BALANCE


@pytest.mark.unit
@pytest.mark.db
def test_transfer_from_missing_self_changes_nothing(service, funded_accounts):
    outcome = service.transfers.transfer(CAROL, 10, BOB, 0)

    assert isinstance(outcome.error, MissingRecordFailure)
    assert service.ledger.load_amount(BOB).amount == BOB_BALANCE


@pytest.mark.unit
@pytest.mark.db
def test_driver_error_on_second_update_rolls_back_first(service, funded_accounts, sqlite_path):
    real_update = service.ledger._update_amount
    calls = []

    def flaky_update(name, amount):
        calls.append(name)
        if len(calls) == 2:
            raise sqlite3.OperationalError("database is locked")
        real_update(name, amount)

    with patch.object(service.ledger, "_update_amount", side_effect=flaky_update):
        outcome = service.transfers.transfer(ALICE, 0, BOB, 150)

    assert calls == [ALICE, BOB]
    assert not outcome
    assert isinstance(outcome.error, TransactionFailure)
    assert isinstance(outcome.error.cause, sqlite3.OperationalError)
    assert _committed_balances(sqlite_path) == {ALICE: ALICE_BALANCE, BOB: BOB_BALANCE}
    assert service.ledger.load_amount(ALICE).amount == ALICE_BALANCE


@pytest.mark.unit
@pytest.mark.db
def test_no_commit_between_the_two_updates(service, funded_accounts, sqlite_path):
    real_update = service.ledger._update_amount
    seen_between = []

    def observing_update(name, amount):
        if name == BOB:
            seen_between.append(_committed_balances(sqlite_path))
        real_update(name, amount)

    with patch.object(service.ledger, "_update_amount", side_effect=observing_update):
        assert service.transfers.transfer(ALICE, 1, BOB, 149)

    assert seen_between == [{ALICE: ALICE_BALANCE, BOB: BOB_BALANCE}]
    assert _committed_balances(sqlite_path) == {ALICE: 1, BOB: 149}


@pytest.mark.unit
@pytest.mark.db
def test_amounts_are_stored_verbatim(service, funded_accounts):
    assert service.transfers.transfer(ALICE, -25, BOB, 175)

    assert service.ledger.load_amount(ALICE).amount == -25
    assert service.ledger.load_amount(BOB).amount == 175


@pytest.mark.unit
@pytest.mark.db
def test_transfer_with_self_as_partner_applies_last_value(service, funded_accounts):
    assert service.transfers.transfer(ALICE, 10, ALICE, 20)

    assert service.ledger.load_amount(ALICE).amount == 20


@pytest.mark.unit
@pytest.mark.db
def test_failed_transfer_is_logged(service, funded_accounts, caplog):
    with caplog.at_level("WARNING", logger="profundus_ledger.db.table_store"):
        service.transfers.transfer(ALICE, 0, CAROL, 0)

    assert "ledger.transfer" in caplog.text
