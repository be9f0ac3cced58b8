"""Generic CRUD over one table definition.

``TableStore`` implements the shared contract (add, search, count,
delete/update one or all) for any ``TableDefinition``. One subclass per
``TableKind`` binds the definition and adds the few lookups callers need for
that kind. ``LedgerStore`` is built on a ``TableStore`` over the money table.

Contract summary:
    - Every operation ensures its table first.
    - Writes run inside ``ConnectionManager.transaction_scope`` and return a
      ``WriteOutcome``. Any failure rolls the transaction back.
    - Reads return rows as dicts and raise ``QueryFailure`` on driver errors.
    - Unknown column names raise ``ValueError`` before any SQL is issued.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from profundus_ledger.db.connection import ConnectionManager
from profundus_ledger.db.dialect import DRIVER_ERRORS, is_duplicate_key_error
from profundus_ledger.db.errors import (
    AmbiguousMatchFailure,
    DatabaseOperationContext,
    DuplicateRecordFailure,
    LedgerOperationError,
    MissingRecordFailure,
    QueryFailure,
    TransactionFailure,
)
from profundus_ledger.db.schema import SchemaManager, TableDefinition, TableKind
from profundus_ledger.db.types import Query, WriteOutcome

logger = logging.getLogger(__name__)


class TableStore:
    """
    CRUD operations for a single table.

    Args:
        manager: Shared connection manager.
        schema: Schema manager used to ensure the table exists.
        definition: Table to operate on. Subclasses may set ``definition``
            as a class attribute instead.
        require_unique: When True, ``delete_one``/``update_one`` fail if the
            query matches more than one row. When False they act on the first
            match in query order (primary key order by default).
    """

    definition: ClassVar[TableDefinition | None] = None

    def __init__(
        self,
        manager: ConnectionManager,
        schema: SchemaManager,
        definition: TableDefinition | None = None,
        *,
        require_unique: bool = True,
    ) -> None:
        table = definition or type(self).definition
        if table is None:
            raise ValueError("TableStore needs a table definition")
        self._manager = manager
        self._schema = schema
        self._table = table
        self._require_unique = require_unique

    @property
    def table(self) -> TableDefinition:
        return self._table

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    # ------------------------------------------------------------------
    # SQL building
    # ------------------------------------------------------------------

    def _check_columns(self, columns: Any) -> None:
        unknown = [name for name in columns if name not in self._table.column_names]
        if unknown:
            raise ValueError(
                f"Unknown column(s) for table {self._table.name}: {', '.join(unknown)}"
            )

    def _where(self, query: Query) -> tuple[str, tuple[Any, ...]]:
        self._check_columns(query.where)
        if not query.where:
            return "", ()
        dialect = self._manager.dialect
        clauses = [f"{dialect.quote(name)} = {dialect.placeholder}" for name in query.where]
        return " WHERE " + " AND ".join(clauses), tuple(query.where.values())

    def _ordering(self, query: Query, *, default_to_key: bool = False) -> str:
        dialect = self._manager.dialect
        column = query.order_by
        if column is None:
            if not default_to_key:
                return ""
            column = self._table.primary_key
        self._check_columns([column])
        direction = " DESC" if query.descending else ""
        return f" ORDER BY {dialect.quote(column)}{direction}"

    def _select(
        self, query: Query, columns: str = "*", *, limit: int | None = None
    ) -> tuple[str, tuple[Any, ...]]:
        where, params = self._where(query)
        sql = f"SELECT {columns} FROM {self._manager.dialect.quote(self._table.name)}{where}"
        sql += self._ordering(query, default_to_key=limit is not None)
        effective_limit = limit if limit is not None else query.limit
        if effective_limit is not None:
            sql += f" LIMIT {int(effective_limit)}"
        return sql, params

    def _op(self, name: str) -> str:
        return f"{self._table.name}.{name}"

    def _context(self, operation: str, details: str | None = None) -> DatabaseOperationContext:
        return DatabaseOperationContext(operation=operation, details=details)

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    def write(self, operation: str, work: Callable[[Any], WriteOutcome]) -> WriteOutcome:
        """
        Run ``work(cursor)`` inside a write transaction.

        The table is ensured before ``work`` runs. Ledger operation failures
        and driver errors roll the transaction back and are returned as a
        failed ``WriteOutcome``. Connection and rollback failures propagate.
        """
        try:
            with self._manager.transaction_scope() as cursor:
                self._schema.require(self._table, operation)
                return work(cursor)
        except LedgerOperationError as exc:
            logger.warning("%s failed: %s", operation, exc)
            self._manager.rollback()
            return WriteOutcome.failure(exc)
        except DRIVER_ERRORS as exc:
            logger.warning("%s failed, transaction rolled back: %s", operation, exc)
            self._manager.rollback()
            duplicate = is_duplicate_key_error(exc)
            error_type = DuplicateRecordFailure if duplicate else TransactionFailure
            return WriteOutcome.failure(
                error_type(context=self._context(operation, str(exc)), cause=exc)
            )

    def _read(self, operation: str, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        try:
            with self._manager.transaction_scope() as cursor:
                self._schema.require(self._table, operation)
                cursor.execute(sql, params)
                names = [column[0] for column in cursor.description]
                return [dict(zip(names, row)) for row in cursor.fetchall()]
        except DRIVER_ERRORS as exc:
            logger.warning("%s query failed: %s", operation, exc)
            self._manager.rollback()
            raise QueryFailure(context=self._context(operation, str(exc)), cause=exc) from exc

    def _matching_keys(self, cursor: Any, operation: str, query: Query) -> list[Any]:
        """Return primary keys of the row(s) a single-row operation targets."""
        key = self._manager.dialect.quote(self._table.primary_key)
        sql, params = self._select(query, key, limit=2)
        cursor.execute(sql, params)
        keys = [row[0] for row in cursor.fetchall()]
        if not keys:
            raise MissingRecordFailure(context=self._context(operation, "no matching row"))
        if len(keys) > 1 and self._require_unique:
            raise AmbiguousMatchFailure(
                context=self._context(operation, "more than one matching row")
            )
        return keys[:1]

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def ensure_schema(self, drop_if_exists: bool = False) -> bool:
        """Create this store's table; ``drop_if_exists`` recreates it empty."""
        return self._schema.ensure(self._table, drop_if_exists=drop_if_exists)

    def add(self, entry: Mapping[str, Any]) -> WriteOutcome:
        """Insert one row."""
        self._check_columns(entry)
        if not entry:
            raise ValueError("Cannot add an empty entry")
        dialect = self._manager.dialect
        columns = ", ".join(dialect.quote(name) for name in entry)
        sql = (
            f"INSERT INTO {dialect.quote(self._table.name)} ({columns}) "
            f"VALUES ({dialect.placeholders(len(entry))})"
        )
        params = tuple(entry.values())

        def work(cursor: Any) -> WriteOutcome:
            cursor.execute(sql, params)
            return WriteOutcome.success(rows_affected=1, last_row_id=cursor.lastrowid)

        return self.write(self._op("add"), work)

    def search(self, query: Query | None = None) -> list[dict[str, Any]]:
        """Return rows matching ``query`` (all rows when omitted)."""
        sql, params = self._select(query or Query())
        return self._read(self._op("search"), sql, params)

    def count(self, query: Query | None = None) -> int:
        """Return the number of rows matching ``query``."""
        sql, params = self._select(Query(where=(query or Query()).where), "COUNT(*) AS total")
        rows = self._read(self._op("count"), sql, params)
        return int(rows[0]["total"])

    def delete_one(self, query: Query) -> WriteOutcome:
        """Delete exactly one matching row."""
        operation = self._op("delete_one")
        dialect = self._manager.dialect
        sql = (
            f"DELETE FROM {dialect.quote(self._table.name)} "
            f"WHERE {dialect.quote(self._table.primary_key)} = {dialect.placeholder}"
        )
        self._where(query)

        def work(cursor: Any) -> WriteOutcome:
            (key,) = self._matching_keys(cursor, operation, query)
            cursor.execute(sql, (key,))
            return WriteOutcome.success(rows_affected=cursor.rowcount)

        return self.write(operation, work)

    def delete_all(self, query: Query | None = None) -> WriteOutcome:
        """Delete every matching row; zero matches is a successful no-op."""
        where, params = self._where(query or Query())
        sql = f"DELETE FROM {self._manager.dialect.quote(self._table.name)}{where}"

        def work(cursor: Any) -> WriteOutcome:
            cursor.execute(sql, params)
            return WriteOutcome.success(rows_affected=cursor.rowcount)

        return self.write(self._op("delete_all"), work)

    def _set_clause(self, new_data: Mapping[str, Any]) -> tuple[str, tuple[Any, ...]]:
        self._check_columns(new_data)
        if not new_data:
            raise ValueError("Update needs at least one column")
        dialect = self._manager.dialect
        assignments = ", ".join(
            f"{dialect.quote(name)} = {dialect.placeholder}" for name in new_data
        )
        return f" SET {assignments}", tuple(new_data.values())

    def update_one(self, query: Query, new_data: Mapping[str, Any]) -> WriteOutcome:
        """Update exactly one matching row."""
        operation = self._op("update_one")
        dialect = self._manager.dialect
        set_clause, set_params = self._set_clause(new_data)
        sql = (
            f"UPDATE {dialect.quote(self._table.name)}{set_clause} "
            f"WHERE {dialect.quote(self._table.primary_key)} = {dialect.placeholder}"
        )
        self._where(query)

        def work(cursor: Any) -> WriteOutcome:
            (key,) = self._matching_keys(cursor, operation, query)
            cursor.execute(sql, (*set_params, key))
            return WriteOutcome.success(rows_affected=1)

        return self.write(operation, work)

    def update_all(self, query: Query | None, new_data: Mapping[str, Any]) -> WriteOutcome:
        """Update every matching row; zero matches is a successful no-op."""
        set_clause, set_params = self._set_clause(new_data)
        where, where_params = self._where(query or Query())
        sql = f"UPDATE {self._manager.dialect.quote(self._table.name)}{set_clause}{where}"

        def work(cursor: Any) -> WriteOutcome:
            cursor.execute(sql, (*set_params, *where_params))
            return WriteOutcome.success(rows_affected=cursor.rowcount)

        return self.write(self._op("update_all"), work)


# ----------------------------------------------------------------------
# Per-kind stores
# ----------------------------------------------------------------------


class PfidTableStore(TableStore):
    """Store for a table keyed by a Profundus id pair."""

    def find_by_pfid(self, most: int, least: int) -> dict[str, Any] | None:
        rows = self.search(
            Query(
                where={"mostSignificantPFID": most, "leastSignificantPFID": least},
                order_by=self._table.primary_key,
            )
        )
        return rows[0] if rows else None


class AccountStore(PfidTableStore):
    """Named accounts owned by a Profundus id."""

    definition = TableKind.ACCOUNT.definition

    def find_by_name(self, name: str) -> dict[str, Any] | None:
        rows = self.search(Query.where_equals(name=name))
        return rows[0] if rows else None


class UserStore(PfidTableStore):
    definition = TableKind.USER.definition


class GroupStore(PfidTableStore):
    """Named player groups. Names are not unique."""

    definition = TableKind.GROUP.definition

    def find_by_name(self, name: str) -> list[dict[str, Any]]:
        return self.search(Query(where={"name": name}, order_by="seqID"))


class ProfundusIdStore(PfidTableStore):
    definition = TableKind.PROFUNDUS_ID.definition


STORE_CLASSES: dict[TableKind, type[TableStore]] = {
    TableKind.ACCOUNT: AccountStore,
    TableKind.USER: UserStore,
    TableKind.GROUP: GroupStore,
    TableKind.PROFUNDUS_ID: ProfundusIdStore,
}


def store_for(kind: TableKind, manager: ConnectionManager, schema: SchemaManager) -> TableStore:
    """Build the concrete store for ``kind``."""
    return STORE_CLASSES[kind](manager, schema)
