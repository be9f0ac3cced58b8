"""SQL dialect differences between the supported backends.

Only the handful of things that actually differ between SQLite and MySQL
live here: bind placeholder, identifier quoting, and the auto-increment
primary key column fragment. Everything else is written in the common
subset both engines accept.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass

import pymysql

# Driver-level exceptions that repositories translate into ledger failures.
DRIVER_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error, pymysql.MySQLError)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# MySQL ER_DUP_ENTRY
_MYSQL_DUPLICATE_ENTRY = 1062


def is_duplicate_key_error(exc: Exception) -> bool:
    """Return True when ``exc`` reports a unique or primary key collision."""
    if isinstance(exc, pymysql.IntegrityError):
        return bool(exc.args) and exc.args[0] == _MYSQL_DUPLICATE_ENTRY
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE constraint failed" in str(exc)
    return False


@dataclass(frozen=True, slots=True)
class Dialect:
    """
    Backend-specific SQL fragments.

    Attributes:
        name: Database kind (``"sqlite"`` or ``"mysql"``).
        placeholder: Bind parameter marker for the driver's paramstyle.
        quote_char: Character used to quote identifiers.
        auto_increment_key: Column type fragment for an auto-increment
            integer primary key.
    """

    name: str
    placeholder: str
    quote_char: str
    auto_increment_key: str

    def quote(self, identifier: str) -> str:
        """Quote a table or column name.

        ``user`` and ``group`` are reserved words in MySQL, so every
        identifier is quoted. Names are validated first because identifiers
        cannot be bound as parameters.
        """
        if not _IDENTIFIER.match(identifier):
            raise ValueError(f"Invalid SQL identifier: {identifier!r}")
        return f"{self.quote_char}{identifier}{self.quote_char}"

    def placeholders(self, count: int) -> str:
        """Return ``count`` comma-separated bind markers."""
        return ", ".join([self.placeholder] * count)


SQLITE = Dialect(
    name="sqlite",
    placeholder="?",
    quote_char='"',
    auto_increment_key="INTEGER PRIMARY KEY AUTOINCREMENT",
)

MYSQL = Dialect(
    name="mysql",
    placeholder="%s",
    quote_char="`",
    auto_increment_key="INT AUTO_INCREMENT PRIMARY KEY",
)

DIALECTS = {SQLITE.name: SQLITE, MYSQL.name: MYSQL}
