"""Connection primitives for the ledger DB layer.

This module owns the single shared connection handle, its lifecycle, and the
transaction scope every write runs in, so repository code can stay focused
on queries and transaction intent.

Autocommit is disabled on both backends. Nothing is durable until the
outermost ``transaction_scope`` exits normally and commits.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pymysql

from profundus_ledger.config import DatabaseSettings
from profundus_ledger.db.dialect import DIALECTS, DRIVER_ERRORS, Dialect
from profundus_ledger.db.errors import (
    ConnectionFailure,
    DatabaseOperationContext,
    RollbackFailure,
    TransactionFailure,
)

logger = logging.getLogger(__name__)

MYSQL_DEFAULT_PORT = 3306
MYSQL_URL_OPTIONS = (
    "useUnicode=true&characterEncoding=utf8&autoReconnect=true&maxReconnects={attempts}"
    "&useSSL=false"
)


@dataclass(frozen=True, slots=True)
class ConnectionTarget:
    """
    Resolved connection parameters for one database kind.

    Attributes:
        kind: ``"sqlite"`` or ``"mysql"``.
        url: Connection string for logs and diagnostics. Never holds credentials.
        sqlite_path: Database file for the sqlite backend.
        host: MySQL host.
        port: MySQL port.
        database: MySQL schema name.
        username: MySQL user.
        password: MySQL password.
        max_reconnects: Open attempts made for MySQL before giving up.
    """

    kind: str
    url: str
    sqlite_path: Path | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    max_reconnects: int = 1


def _split_address(address: str) -> tuple[str, int]:
    """Split ``host[:port]`` into its parts."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, MYSQL_DEFAULT_PORT
    try:
        return host, int(port)
    except ValueError as exc:
        raise ConnectionFailure(f"Invalid database address: {address!r}") from exc


def build_connection_target(settings: DatabaseSettings) -> ConnectionTarget:
    """
    Build the connection target for the configured database kind.

    Raises:
        ConnectionFailure: For an unknown kind or an unusable MySQL address.
    """
    kind = settings.kind.lower()
    if kind == "mysql":
        if not settings.address or not settings.name:
            raise ConnectionFailure("mysql requires both a database address and name")
        host, port = _split_address(settings.address)
        options = MYSQL_URL_OPTIONS.format(attempts=settings.max_reconnects)
        return ConnectionTarget(
            kind=kind,
            url=f"mysql://{settings.address}/{settings.name}?{options}",
            host=host,
            port=port,
            database=settings.name,
            username=settings.username,
            password=settings.password,
            max_reconnects=max(1, settings.max_reconnects),
        )
    if kind == "sqlite":
        path = settings.sqlite_path
        return ConnectionTarget(kind=kind, url=f"sqlite:{path}", sqlite_path=path)
    raise ConnectionFailure(f"Invalid database type: {settings.kind!r}")


def configure_sqlite_connection(connection: sqlite3.Connection) -> sqlite3.Connection:
    """Apply connection-level SQLite pragmas required by the ledger.

    Notes:
        - ``foreign_keys=ON`` is required because SQLite does not enforce
          foreign-key constraints by default.
        - ``busy_timeout`` reduces transient lock failures when another
          process holds the file.
    """
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute("PRAGMA busy_timeout = 5000")
    return connection


def _open_sqlite(target: ConnectionTarget) -> sqlite3.Connection:
    if target.sqlite_path is None:
        raise ConnectionFailure("sqlite target has no database path")
    target.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    # Default isolation level keeps Python's implicit BEGIN before writes, so
    # every write waits for an explicit commit(). The manager's lock guards
    # cross-thread use.
    connection = sqlite3.connect(str(target.sqlite_path), check_same_thread=False)
    return configure_sqlite_connection(connection)


def _open_mysql(target: ConnectionTarget) -> Any:
    last_error: Exception | None = None
    for attempt in range(1, target.max_reconnects + 1):
        try:
            return pymysql.connect(
                host=target.host,
                port=target.port,
                user=target.username,
                password=target.password or "",
                database=target.database,
                charset="utf8mb4",
                autocommit=False,
                ssl_disabled=True,
            )
        except pymysql.MySQLError as exc:
            last_error = exc
            logger.warning(
                "MySQL connect attempt %d/%d failed: %s", attempt, target.max_reconnects, exc
            )
    raise ConnectionFailure(f"Could not connect to {target.url}") from last_error


class ConnectionManager:
    """
    Owner of the single shared connection handle.

    The handle moves between two states: disconnected (``None``) and
    connected. ``get_connection`` is the only place that connects lazily;
    every other failure is raised as ``ConnectionFailure`` and not retried.

    All statements should run inside ``transaction_scope``, which holds the
    manager's re-entrant lock for the whole transaction so concurrent callers
    never interleave statements on the shared connection.

    Args:
        settings: Database settings. When omitted, the module-level
            ``profundus_ledger.config.config.database`` is read at connect time.
    """

    def __init__(self, settings: DatabaseSettings | None = None) -> None:
        self._settings = settings
        self._connection: Any = None
        self._target: ConnectionTarget | None = None
        self._lock = threading.RLock()
        self._depth = 0
        self._rollback_only = False
        self._generation = 0

    @property
    def settings(self) -> DatabaseSettings:
        if self._settings is not None:
            return self._settings
        from profundus_ledger.config import config

        return config.database

    @property
    def target(self) -> ConnectionTarget:
        """Target of the live connection, or the one the next connect will use."""
        if self._target is not None:
            return self._target
        return build_connection_target(self.settings)

    @property
    def dialect(self) -> Dialect:
        return DIALECTS[self.target.kind]

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        """True while the calling thread is inside a ``transaction_scope``."""
        with self._lock:
            return self._depth > 0

    @property
    def generation(self) -> int:
        """Counter bumped on every rollback and disconnect."""
        return self._generation

    def connect(self) -> Any:
        """
        Open the connection with autocommit disabled.

        Calling ``connect`` while already connected returns the live handle.

        Raises:
            ConnectionFailure: For an invalid database kind or a failed open.
        """
        with self._lock:
            if self._connection is not None:
                return self._connection
            target = build_connection_target(self.settings)
            try:
                if target.kind == "mysql":
                    connection = _open_mysql(target)
                else:
                    connection = _open_sqlite(target)
            except ConnectionFailure:
                logger.error("Database connection failed: %s", target.url)
                raise
            except (OSError, *DRIVER_ERRORS) as exc:
                logger.error("Database connection failed: %s (%s)", target.url, exc)
                raise ConnectionFailure(f"Could not connect to {target.url}") from exc
            self._connection = connection
            self._target = target
            logger.info("Connected to %s", target.url)
            return connection

    def disconnect(self) -> None:
        """
        Close the active connection and clear the handle.

        Raises:
            ConnectionFailure: When the driver fails to close the connection.
        """
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
            except DRIVER_ERRORS as exc:
                logger.error("Database disconnect failed: %s", exc)
                raise ConnectionFailure("Could not close the database connection") from exc
            finally:
                self._connection = None
                self._target = None
                self._depth = 0
                self._rollback_only = False
                self._generation += 1
            logger.info("Disconnected from database")

    def ping(self) -> None:
        """
        Issue a trivial query to keep an idle connection alive.

        Raises:
            ConnectionFailure: When no connection exists or the query fails.
        """
        with self._lock:
            if self._connection is None:
                raise ConnectionFailure("Cannot ping: no open database connection")
            try:
                cursor = self._connection.cursor()
                try:
                    cursor.execute("SELECT 1")
                    cursor.fetchone()
                finally:
                    cursor.close()
            except DRIVER_ERRORS as exc:
                logger.error("Database ping failed: %s", exc)
                raise ConnectionFailure("Database ping failed") from exc

    def get_connection(self) -> Any:
        """Return the live handle, connecting first when none exists."""
        with self._lock:
            if self._connection is None:
                return self.connect()
            return self._connection

    def rollback(self) -> None:
        """
        Roll back the current transaction on the live connection.

        Raises:
            RollbackFailure: When the rollback itself fails.
        """
        with self._lock:
            if self._connection is None:
                return
            self._generation += 1
            if self._depth > 0:
                self._rollback_only = True
            try:
                self._connection.rollback()
            except DRIVER_ERRORS as exc:
                logger.error("Rollback failed; connection is no longer trustworthy: %s", exc)
                raise RollbackFailure("Rollback failed") from exc

    @contextmanager
    def transaction_scope(self) -> Iterator[Any]:
        """Yield a cursor inside a serialized transaction.

        Behavior:
            - Holds the manager lock until the scope exits.
            - The outermost scope commits on normal exit.
            - The outermost scope rolls back on any exception, then re-raises.
            - Nested scopes join the enclosing transaction.
            - A rollback issued while a scope is open marks the transaction
              rollback-only: the outermost scope then rolls back and raises
              ``TransactionFailure`` instead of committing.
            - A failed rollback raises ``RollbackFailure`` chained to the
              original error.
        """
        with self._lock:
            connection = self.get_connection()
            cursor = connection.cursor()
            outermost = self._depth == 0
            if outermost:
                self._rollback_only = False
            self._depth += 1
            try:
                yield cursor
            except BaseException:
                if outermost:
                    self.rollback()
                raise
            else:
                if outermost:
                    self._finish(connection)
            finally:
                self._depth -= 1
                if outermost:
                    self._rollback_only = False
                cursor.close()

    def _finish(self, connection: Any) -> None:
        """Commit the outermost transaction, or roll it back if it was aborted."""
        if self._rollback_only:
            self.rollback()
            raise TransactionFailure(
                context=DatabaseOperationContext(
                    operation="transaction_scope",
                    details="transaction was rolled back by an enclosed operation",
                )
            )
        try:
            connection.commit()
        except BaseException:
            self.rollback()
            raise
