"""Typed ledger exceptions for the DB package.

Two families live here:

    - Fatal connection failures (``ConnectionFailure`` and its
      ``RollbackFailure`` subclass). These mean the shared connection can no
      longer be trusted and always propagate to the caller.
    - Record-level operation failures (``LedgerOperationError`` subclasses).
      Repositories raise them inside a transaction scope so the scope rolls
      back, then convert them into ``WriteOutcome``/``AmountLookup`` values at
      the operation boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DatabaseOperationContext:
    """Structured operation metadata carried by operation exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"ledger.create_record"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class LedgerError(RuntimeError):
    """Base exception for every ledger failure."""


class ConnectionFailure(LedgerError):
    """The connection could not be opened, closed, or pinged.

    Fatal: callers should not retry on the same manager.
    """


class RollbackFailure(ConnectionFailure):
    """A rollback attempt failed; the connection state is unknown."""


class LedgerOperationError(LedgerError):
    """Base exception for record-level operation failures.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: DatabaseOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class SchemaFailure(LedgerOperationError):
    """DDL for a table could not be applied."""


class DuplicateRecordFailure(LedgerOperationError):
    """A record with the same key already exists."""


class MissingRecordFailure(LedgerOperationError):
    """The record targeted by an update or delete does not exist."""


class AmbiguousMatchFailure(LedgerOperationError):
    """A single-row operation matched more than one row."""


class TransactionFailure(LedgerOperationError):
    """A statement inside a transaction failed; the transaction was rolled back."""


class QueryFailure(LedgerOperationError):
    """A read query failed."""
