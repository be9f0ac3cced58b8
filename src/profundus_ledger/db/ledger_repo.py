"""Money record repository.

One row per account name holding an integer balance. Records are created
with a zero balance and only ever change through ``TransferCoordinator``.
"""

from __future__ import annotations

import logging
from typing import Any

from profundus_ledger.db.connection import ConnectionManager
from profundus_ledger.db.errors import (
    DatabaseOperationContext,
    DuplicateRecordFailure,
    LedgerOperationError,
    MissingRecordFailure,
    TransactionFailure,
)
from profundus_ledger.db.schema import MONEY_TABLE, SchemaManager
from profundus_ledger.db.table_store import TableStore
from profundus_ledger.db.types import AmountLookup, Query, WriteOutcome

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 36


def validate_record_name(name: str) -> str:
    """Return ``name`` if it fits the money table key, else raise ``ValueError``."""
    if not isinstance(name, str) or not name:
        raise ValueError("Record name must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Record name must be at most {MAX_NAME_LENGTH} characters")
    return name


class LedgerStore:
    """CRUD for money records keyed by name."""

    def __init__(self, manager: ConnectionManager, schema: SchemaManager) -> None:
        self._manager = manager
        self._schema = schema
        self._table = TableStore(manager, schema, MONEY_TABLE)

    @property
    def table(self) -> TableStore:
        return self._table

    def ensure_table(self) -> bool:
        return self._schema.ensure_money_table()

    def create_record(self, name: str) -> WriteOutcome:
        """
        Open a money record for ``name`` with a zero balance.

        Returns:
            Successful ``WriteOutcome`` once committed. A failed outcome with
            ``DuplicateRecordFailure`` when ``name`` already has a record, or
            with the lookup/driver failure otherwise. Every failure is rolled
            back.
        """
        validate_record_name(name)
        operation = "ledger.create_record"
        dialect = self._manager.dialect
        sql = (
            f"INSERT INTO {dialect.quote(MONEY_TABLE.name)} "
            f"({dialect.quote('name')}, {dialect.quote('amount')}) "
            f"VALUES ({dialect.placeholder}, 0)"
        )

        def work(cursor: Any) -> WriteOutcome:
            lookup = self.load_amount(name)
            lookup.raise_for_error()
            if lookup.found:
                raise DuplicateRecordFailure(
                    context=DatabaseOperationContext(operation, f"record {name!r} already exists")
                )
            cursor.execute(sql, (name,))
            return WriteOutcome.success()

        outcome = self._table.write(operation, work)
        if outcome:
            logger.info("Opened money record %s", name)
        return outcome

    def load_amount(self, name: str) -> AmountLookup:
        """
        Read the balance stored for ``name``.

        Returns:
            ``AmountLookup`` with status ``found`` (and the amount),
            ``not_found``, or ``failed`` (and the error) when the query could
            not run. Query failures are rolled back.
        """
        try:
            rows = self._table.search(Query.where_equals(name=name))
        except LedgerOperationError as exc:
            return AmountLookup(status="failed", error=exc)
        if not rows:
            return AmountLookup(status="not_found")
        return AmountLookup(status="found", amount=int(rows[0]["amount"]))

    def list_records(self) -> list[tuple[str, int]]:
        """Return every ``(name, amount)`` pair ordered by name."""
        rows = self._table.search(Query(order_by="name"))
        return [(row["name"], int(row["amount"])) for row in rows]

    def _update_amount(self, name: str, amount: int) -> None:
        """
        Set the balance for an existing record without committing.

        Must run inside the caller's ``transaction_scope``; the caller owns the
        commit.

        Raises:
            TransactionFailure: When called outside a ``transaction_scope``.
            MissingRecordFailure: When ``name`` has no record.
            LedgerOperationError: When the existence check fails.
        """
        operation = "ledger.update_amount"
        if not self._manager.in_transaction:
            raise TransactionFailure(
                context=DatabaseOperationContext(operation, "no enclosing transaction_scope")
            )
        lookup = self.load_amount(name)
        lookup.raise_for_error()
        if lookup.not_found:
            raise MissingRecordFailure(
                context=DatabaseOperationContext(operation, f"no record for {name!r}")
            )
        dialect = self._manager.dialect
        sql = (
            f"UPDATE {dialect.quote(MONEY_TABLE.name)} SET {dialect.quote('amount')} = "
            f"{dialect.placeholder} WHERE {dialect.quote('name')} = {dialect.placeholder}"
        )
        with self._manager.transaction_scope() as cursor:
            self._schema.require(MONEY_TABLE, operation)
            cursor.execute(sql, (int(amount), name))
