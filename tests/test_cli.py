"""
Unit tests for the CLI module (profundus_ledger/cli.py).

Tests cover:
- Argument parsing
- init-db, open-account, balance, transfer, ping and issue-id commands
- Error exit codes
"""

import argparse
from unittest.mock import patch

import pytest

from profundus_ledger import cli
from profundus_ledger.db.errors import ConnectionFailure
from profundus_ledger.db.schema import TableKind
from profundus_ledger.service import LedgerService
from tests.constants import ALICE, BOB

# ============================================================================
# PARSER TESTS
# ============================================================================


@pytest.mark.unit
def test_parser_transfer_arguments():
    args = cli.build_parser().parse_args(["transfer", ALICE, "10", BOB, "-5"])

    assert args.func is cli.cmd_transfer
    assert (args.self_name, args.self_amount) == (ALICE, 10)
    assert (args.partner_name, args.partner_amount) == (BOB, -5)


@pytest.mark.unit
def test_parser_rejects_unknown_drop_kind():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["init-db", "--drop", "inventory"])


@pytest.mark.unit
def test_parser_balance_requires_name_or_all():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["balance"])


@pytest.mark.unit
def test_main_without_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


# ============================================================================
# COMMAND TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.db
def test_init_db(temp_data_dir, capsys):
    assert cli.main(["init-db"]) == 0

    assert "initialized" in capsys.readouterr().out
    assert (temp_data_dir / "database.db").exists()


@pytest.mark.unit
@pytest.mark.db
def test_init_db_drop_recreates_table(temp_data_dir, capsys):
    assert cli.main(["issue-id", "user"]) == 0
    assert cli.main(["init-db", "--drop", "profundus_id"]) == 0

    with LedgerService() as service:
        assert service.tables[TableKind.PROFUNDUS_ID].count() == 0


@pytest.mark.unit
@pytest.mark.db
def test_open_account_then_balance(temp_data_dir, capsys):
    assert cli.main(["open-account", ALICE]) == 0
    capsys.readouterr()

    assert cli.main(["balance", ALICE]) == 0
    assert capsys.readouterr().out.strip() == "0"


@pytest.mark.unit
@pytest.mark.db
def test_open_account_twice_fails(temp_data_dir, capsys):
    assert cli.main(["open-account", ALICE]) == 0
    assert cli.main(["open-account", ALICE]) == 1

    assert "could not open account" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.db
def test_open_account_name_too_long(temp_data_dir, capsys):
    assert cli.main(["open-account", "n" * 37]) == 1
    assert "Error opening account" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.db
def test_balance_unknown_name(temp_data_dir, capsys):
    assert cli.main(["balance", "nobody"]) == 1
    assert "no account named" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.db
def test_transfer_and_list_all(temp_data_dir, capsys):
    assert cli.main(["open-account", ALICE]) == 0
    assert cli.main(["open-account", BOB]) == 0
    assert cli.main(["transfer", ALICE, "30", BOB, "70"]) == 0
    capsys.readouterr()

    assert cli.main(["balance", "--all"]) == 0
    assert capsys.readouterr().out.splitlines() == [f"{ALICE}\t30", f"{BOB}\t70"]


@pytest.mark.unit
@pytest.mark.db
def test_transfer_to_missing_partner_fails(temp_data_dir, capsys):
    assert cli.main(["open-account", ALICE]) == 0

    assert cli.main(["transfer", ALICE, "30", BOB, "70"]) == 1
    assert "rolled back" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.db
def test_ping(temp_data_dir, capsys):
    assert cli.main(["ping"]) == 0
    assert capsys.readouterr().out.startswith("OK sqlite:")


@pytest.mark.unit
@pytest.mark.db
def test_issue_id(temp_data_dir, capsys):
    assert cli.main(["issue-id", "group"]) == 0

    seq_id, pfid, type_tag = capsys.readouterr().out.strip().split("\t")
    assert seq_id == "1"
    assert len(pfid) == 36
    assert type_tag == "group"


@pytest.mark.unit
def test_commands_report_connection_failure(capsys):
    with patch(
        "profundus_ledger.cli.LedgerService.open",
        side_effect=ConnectionFailure("Invalid database type: postgres"),
    ):
        assert cli.cmd_init_db(argparse.Namespace(drop=None)) == 1
        assert cli.cmd_open_account(argparse.Namespace(name=ALICE)) == 1
        assert cli.cmd_balance(argparse.Namespace(name=ALICE, all=False)) == 1
        assert cli.cmd_issue_id(argparse.Namespace(type="user")) == 1

    assert "Invalid database type" in capsys.readouterr().err


@pytest.mark.unit
def test_ping_failure(capsys):
    with patch("profundus_ledger.cli.LedgerService") as service_cls:
        service_cls.return_value.connection.connect.side_effect = ConnectionFailure("refused")
        assert cli.cmd_ping(argparse.Namespace()) == 1

    assert "Ping failed: refused" in capsys.readouterr().err
