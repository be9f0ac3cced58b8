"""Table definitions and idempotent schema creation.

The schema layer is isolated from query code so schema changes are reviewable
without wading through repository logic. Every table is described once as a
``TableDefinition``; DDL is rendered per dialect from that description.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from profundus_ledger.db.connection import ConnectionManager
from profundus_ledger.db.dialect import DRIVER_ERRORS, Dialect
from profundus_ledger.db.errors import DatabaseOperationContext, SchemaFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Column:
    """
    One column of a table definition.

    Attributes:
        name: Column name.
        ddl: Type and constraints, for example ``"BIGINT NOT NULL"``. Ignored
            for the auto-increment key, whose fragment comes from the dialect.
        auto_key: True for an auto-increment integer primary key.
    """

    name: str
    ddl: str = ""
    auto_key: bool = False


@dataclass(frozen=True, slots=True)
class TableDefinition:
    """
    Dialect-neutral description of one table.

    Attributes:
        name: Table name.
        columns: Columns in DDL order.
        primary_key: Primary key column name.
        unique: Columns carrying a single-column ``UNIQUE`` constraint.
    """

    name: str
    columns: tuple[Column, ...]
    primary_key: str
    unique: tuple[str, ...] = ()

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def has_auto_key(self) -> bool:
        return any(column.auto_key for column in self.columns)

    def create_statement(self, dialect: Dialect) -> str:
        """Render ``CREATE TABLE IF NOT EXISTS`` for ``dialect``."""
        parts = []
        for column in self.columns:
            if column.auto_key:
                parts.append(f"{dialect.quote(column.name)} {dialect.auto_increment_key}")
            else:
                parts.append(f"{dialect.quote(column.name)} {column.ddl}")
        if not self.has_auto_key:
            parts.append(f"PRIMARY KEY ({dialect.quote(self.primary_key)})")
        for name in self.unique:
            parts.append(f"UNIQUE ({dialect.quote(name)})")
        return f"CREATE TABLE IF NOT EXISTS {dialect.quote(self.name)} ({', '.join(parts)})"

    def drop_statement(self, dialect: Dialect) -> str:
        return f"DROP TABLE IF EXISTS {dialect.quote(self.name)}"


# Every generalized entity is keyed by a 128-bit Profundus id stored as two
# signed 64-bit halves.
_SEQ_ID = Column("seqID", auto_key=True)
_PFID_COLUMNS = (
    Column("mostSignificantPFID", "BIGINT NOT NULL"),
    Column("leastSignificantPFID", "BIGINT NOT NULL"),
)

MONEY_TABLE = TableDefinition(
    name="money",
    columns=(
        Column("name", "VARCHAR(36) NOT NULL"),
        Column("amount", "INT NOT NULL"),
    ),
    primary_key="name",
)


class TableKind(Enum):
    """Generalized entity tables."""

    ACCOUNT = "account"
    USER = "user"
    GROUP = "group"
    PROFUNDUS_ID = "profundus_id"

    @property
    def table_name(self) -> str:
        return self.value

    @property
    def definition(self) -> TableDefinition:
        return TABLE_DEFINITIONS[self]


TABLE_DEFINITIONS: dict[TableKind, TableDefinition] = {
    TableKind.ACCOUNT: TableDefinition(
        name="account",
        columns=(
            _SEQ_ID,
            *_PFID_COLUMNS,
            Column("name", "VARCHAR(36) NOT NULL"),
            Column("amount", "INT NOT NULL DEFAULT 0"),
        ),
        primary_key="seqID",
        unique=("name",),
    ),
    TableKind.USER: TableDefinition(
        name="user",
        columns=(_SEQ_ID, *_PFID_COLUMNS, Column("name", "VARCHAR(36) NOT NULL")),
        primary_key="seqID",
    ),
    TableKind.GROUP: TableDefinition(
        name="group",
        columns=(_SEQ_ID, *_PFID_COLUMNS, Column("name", "VARCHAR(64) NOT NULL")),
        primary_key="seqID",
    ),
    TableKind.PROFUNDUS_ID: TableDefinition(
        name="profundus_id",
        columns=(_SEQ_ID, *_PFID_COLUMNS, Column("type", "VARCHAR(64) NOT NULL")),
        primary_key="seqID",
    ),
}


class SchemaManager:
    """
    Idempotent DDL for every ledger table.

    Successfully ensured tables are remembered until the connection manager
    rolls back or disconnects, so repeated ensures before every operation do
    not re-issue DDL inside an open transaction (MySQL commits implicitly on
    DDL).
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager
        self._ensured: set[str] = set()
        self._generation = manager.generation

    def _ensured_tables(self) -> set[str]:
        if self._generation != self._manager.generation:
            self._ensured.clear()
            self._generation = self._manager.generation
        return self._ensured

    def ensure(self, definition: TableDefinition, *, drop_if_exists: bool = False) -> bool:
        """
        Create ``definition`` if missing, optionally dropping it first.

        Returns:
            ``True`` when the table is available. On a statement error the
            current transaction is rolled back and ``False`` is returned.
        """
        ensured = self._ensured_tables()
        if not drop_if_exists and definition.name in ensured:
            return True

        dialect = self._manager.dialect
        statements = []
        if drop_if_exists:
            statements.append(definition.drop_statement(dialect))
        statements.append(definition.create_statement(dialect))

        try:
            with self._manager.transaction_scope() as cursor:
                for statement in statements:
                    cursor.execute(statement)
        except DRIVER_ERRORS as exc:
            logger.warning("Schema creation failed for table %s: %s", definition.name, exc)
            self._manager.rollback()
            return False

        self._ensured_tables().add(definition.name)
        if drop_if_exists:
            logger.info("Recreated table %s", definition.name)
        return True

    def ensure_money_table(self) -> bool:
        """Create the ``money`` table if missing."""
        return self.ensure(MONEY_TABLE)

    def ensure_table(self, kind: TableKind, drop_if_exists: bool = False) -> bool:
        """Create the table for ``kind``; with ``drop_if_exists`` it is recreated empty."""
        return self.ensure(kind.definition, drop_if_exists=drop_if_exists)

    def ensure_all(self) -> dict[str, bool]:
        """Ensure the money table and every entity table."""
        results = {MONEY_TABLE.name: self.ensure_money_table()}
        for kind in TableKind:
            results[kind.table_name] = self.ensure_table(kind)
        return results

    def require(self, definition: TableDefinition, operation: str) -> None:
        """
        Ensure ``definition`` or raise.

        Raises:
            SchemaFailure: When the table could not be created.
        """
        if not self.ensure(definition):
            raise SchemaFailure(
                context=DatabaseOperationContext(
                    operation=operation,
                    details=f"table {definition.name} is unavailable",
                )
            )

    def table_exists(self, name: str) -> bool:
        """Return ``True`` when a table called ``name`` exists."""
        dialect = self._manager.dialect
        if dialect.name == "mysql":
            sql = (
                "SELECT table_name FROM information_schema.tables "
                f"WHERE table_schema = DATABASE() AND table_name = {dialect.placeholder}"
            )
        else:
            sql = (
                "SELECT name FROM sqlite_master "
                f"WHERE type = 'table' AND name = {dialect.placeholder}"
            )
        with self._manager.transaction_scope() as cursor:
            cursor.execute(sql, (name,))
            return cursor.fetchone() is not None
