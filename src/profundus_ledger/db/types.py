"""Shared DB-layer dataclasses for repository contracts."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from profundus_ledger.db.errors import LedgerOperationError


@dataclass(frozen=True, slots=True)
class AmountLookup:
    """
    Result of reading one money record.

    Attributes:
        status: One of:
            - ``"found"``     the record exists; ``amount`` holds its value.
            - ``"not_found"`` no record exists for the name.
            - ``"failed"``    the query itself failed; ``error`` holds the cause.
        amount: Stored balance when ``status == "found"``.
        error: The failure when ``status == "failed"``.
    """

    status: Literal["found", "not_found", "failed"]
    amount: int | None = None
    error: LedgerOperationError | None = None

    @property
    def found(self) -> bool:
        return self.status == "found"

    @property
    def not_found(self) -> bool:
        return self.status == "not_found"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def raise_for_error(self) -> None:
        """Re-raise the query failure, if any."""
        if self.error is not None:
            raise self.error


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """
    Result of a record-level write.

    Truthiness mirrors ``ok`` so callers can write ``if store.add(...):``.

    Attributes:
        ok: True when the write was committed.
        error: The failure that caused the rollback, when ``ok`` is False.
        rows_affected: Number of rows written on success.
        last_row_id: Driver-reported id of the last inserted row, if any.
    """

    ok: bool
    error: LedgerOperationError | None = None
    rows_affected: int = 0
    last_row_id: int | None = None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> None:
        """Re-raise the failure that rolled this write back, if any."""
        if self.error is not None:
            raise self.error

    @classmethod
    def success(cls, rows_affected: int = 1, last_row_id: int | None = None) -> WriteOutcome:
        return cls(ok=True, rows_affected=rows_affected, last_row_id=last_row_id)

    @classmethod
    def failure(cls, error: LedgerOperationError) -> WriteOutcome:
        return cls(ok=False, error=error)


@dataclass(frozen=True, slots=True)
class Query:
    """
    Row predicate for generic table operations.

    Attributes:
        where: Column -> value equality filters, joined with ``AND``. An empty
            mapping matches every row.
        order_by: Optional column to sort by.
        descending: Sort direction when ``order_by`` is set.
        limit: Optional maximum number of rows to return.
    """

    where: Mapping[str, Any] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None

    @classmethod
    def where_equals(cls, **filters: Any) -> Query:
        """Build an equality-only query from keyword filters."""
        return cls(where=dict(filters))
