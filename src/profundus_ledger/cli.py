"""
Command-line interface for the Profundus ledger.

Provides operator commands against the configured database:
- init-db: Create every ledger table (optionally recreating some empty)
- open-account: Open a money record with a zero balance
- balance: Show one balance, or every balance with --all
- transfer: Set two balances in one transaction
- ping: Check that the database answers
- issue-id: Issue a new Profundus id

Usage:
    profundus-ledger init-db [--drop KIND ...]
    profundus-ledger open-account NAME
    profundus-ledger balance NAME | --all
    profundus-ledger transfer SELF AMOUNT PARTNER AMOUNT
    profundus-ledger ping
    profundus-ledger issue-id TYPE

Database settings come from config/ledger.ini and PROFUNDUS_* environment
variables (see profundus_ledger.config).
"""

import argparse
import sys

from profundus_ledger.db.errors import LedgerError
from profundus_ledger.db.schema import TableKind
from profundus_ledger.service import LedgerService


def _service() -> LedgerService:
    return LedgerService().open()


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Create all tables, recreating the kinds named with --drop.

    Returns:
        0 on success, 1 if any table could not be created
    """
    try:
        service = _service()
    except LedgerError as e:
        print(f"Error connecting to database: {e}", file=sys.stderr)
        return 1

    try:
        failed = []
        for name in args.drop or []:
            if not service.schema.ensure_table(TableKind(name), drop_if_exists=True):
                failed.append(name)
        for name, ok in service.schema.ensure_all().items():
            if not ok:
                failed.append(name)
    finally:
        service.close()

    if failed:
        print(f"Error creating tables: {', '.join(sorted(set(failed)))}", file=sys.stderr)
        return 1
    print("Database initialized successfully.")
    return 0


def cmd_open_account(args: argparse.Namespace) -> int:
    """Open a money record for args.name."""
    try:
        service = _service()
        try:
            outcome = service.ledger.create_record(args.name)
        finally:
            service.close()
    except (LedgerError, ValueError) as e:
        print(f"Error opening account: {e}", file=sys.stderr)
        return 1

    if not outcome:
        print(f"Error: could not open account '{args.name}': {outcome.error}", file=sys.stderr)
        return 1
    print(f"Account '{args.name}' opened with balance 0.")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Print one balance, or all of them."""
    try:
        service = _service()
        try:
            if args.all:
                for name, amount in service.ledger.list_records():
                    print(f"{name}\t{amount}")
                return 0
            lookup = service.ledger.load_amount(args.name)
        finally:
            service.close()
    except LedgerError as e:
        print(f"Error reading balance: {e}", file=sys.stderr)
        return 1

    if lookup.failed:
        print(f"Error reading balance: {lookup.error}", file=sys.stderr)
        return 1
    if lookup.not_found:
        print(f"Error: no account named '{args.name}'.", file=sys.stderr)
        return 1
    print(lookup.amount)
    return 0


def cmd_transfer(args: argparse.Namespace) -> int:
    """Set both balances atomically."""
    try:
        service = _service()
        try:
            outcome = service.transfers.transfer(
                args.self_name, args.self_amount, args.partner_name, args.partner_amount
            )
        finally:
            service.close()
    except LedgerError as e:
        print(f"Error during transfer: {e}", file=sys.stderr)
        return 1

    if not outcome:
        print(f"Transfer failed and was rolled back: {outcome.error}", file=sys.stderr)
        return 1
    print(f"{args.self_name}={args.self_amount} {args.partner_name}={args.partner_amount}")
    return 0


def cmd_ping(args: argparse.Namespace) -> int:
    """Connect and ping the database."""
    service = LedgerService()
    try:
        service.connection.connect()
        service.connection.ping()
    except LedgerError as e:
        print(f"Ping failed: {e}", file=sys.stderr)
        return 1
    finally:
        service.connection.disconnect()
    print(f"OK {service.connection.target.url}")
    return 0


def cmd_issue_id(args: argparse.Namespace) -> int:
    """Issue a new Profundus id tagged with args.type."""
    try:
        service = _service()
        try:
            issued = service.ids.issue(args.type)
        finally:
            service.close()
    except (LedgerError, ValueError) as e:
        print(f"Error issuing id: {e}", file=sys.stderr)
        return 1
    print(f"{issued.seq_id}\t{issued.pfid}\t{issued.type}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="profundus-ledger",
        description="Profundus ledger management",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Create ledger tables")
    init_parser.add_argument(
        "--drop",
        action="append",
        choices=[kind.value for kind in TableKind],
        help="Drop and recreate this table kind (repeatable)",
    )
    init_parser.set_defaults(func=cmd_init_db)

    open_parser = subparsers.add_parser("open-account", help="Open a money record")
    open_parser.add_argument("name")
    open_parser.set_defaults(func=cmd_open_account)

    balance_parser = subparsers.add_parser("balance", help="Show balances")
    balance_group = balance_parser.add_mutually_exclusive_group(required=True)
    balance_group.add_argument("name", nargs="?")
    balance_group.add_argument("--all", action="store_true", help="List every balance")
    balance_parser.set_defaults(func=cmd_balance)

    transfer_parser = subparsers.add_parser("transfer", help="Set two balances atomically")
    transfer_parser.add_argument("self_name")
    transfer_parser.add_argument("self_amount", type=int)
    transfer_parser.add_argument("partner_name")
    transfer_parser.add_argument("partner_amount", type=int)
    transfer_parser.set_defaults(func=cmd_transfer)

    ping_parser = subparsers.add_parser("ping", help="Check the database connection")
    ping_parser.set_defaults(func=cmd_ping)

    issue_parser = subparsers.add_parser("issue-id", help="Issue a new Profundus id")
    issue_parser.add_argument("type")
    issue_parser.set_defaults(func=cmd_issue_id)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    from profundus_ledger.config import config, configure_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        config.logging.level = args.log_level.upper()
    configure_logging(config.logging)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
