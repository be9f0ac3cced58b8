"""Profundus identifiers.

A Profundus id (PFID) is a 128-bit UUID. The ``profundus_id`` table stores it
as two signed 64-bit integers, the most- and least-significant halves in
two's complement, so it fits two ``BIGINT`` columns on every backend.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from profundus_ledger.db.errors import DatabaseOperationContext, TransactionFailure
from profundus_ledger.db.table_store import ProfundusIdStore
from profundus_ledger.db.types import WriteOutcome

logger = logging.getLogger(__name__)

_MASK_64 = (1 << 64) - 1
_SIGN_64 = 1 << 63


def _to_signed(value: int) -> int:
    return value - (1 << 64) if value & _SIGN_64 else value


def split_uuid(value: uuid.UUID) -> tuple[int, int]:
    """Split ``value`` into signed (most, least) significant 64-bit halves."""
    raw = value.int
    return _to_signed(raw >> 64), _to_signed(raw & _MASK_64)


def join_halves(most: int, least: int) -> uuid.UUID:
    """Rebuild a UUID from signed or unsigned 64-bit halves."""
    return uuid.UUID(int=((most & _MASK_64) << 64) | (least & _MASK_64))


@dataclass(frozen=True, slots=True)
class IssuedId:
    """
    One row of the ``profundus_id`` table.

    Attributes:
        seq_id: Auto-increment sequence number.
        pfid: The identifier itself.
        type: Tag describing what the id was issued for (``"user"``, ``"group"``...).
    """

    seq_id: int
    pfid: uuid.UUID
    type: str

    @property
    def halves(self) -> tuple[int, int]:
        return split_uuid(self.pfid)


class ProfundusIdRegistry:
    """Issues new identifiers and resolves existing ones."""

    def __init__(self, store: ProfundusIdStore) -> None:
        self._store = store

    def issue(self, type_tag: str) -> IssuedId:
        """
        Generate, persist, and return a new identifier.

        Raises:
            ValueError: When ``type_tag`` is empty.
            LedgerOperationError: When the insert was rolled back.
        """
        if not type_tag:
            raise ValueError("type_tag must be a non-empty string")
        pfid = uuid.uuid4()
        most, least = split_uuid(pfid)
        outcome: WriteOutcome = self._store.add(
            {"mostSignificantPFID": most, "leastSignificantPFID": least, "type": type_tag}
        )
        outcome.raise_for_error()
        if outcome.last_row_id is None:
            raise TransactionFailure(
                context=DatabaseOperationContext("profundus_id.issue", "driver returned no row id")
            )
        logger.debug("Issued %s id %s", type_tag, pfid)
        return IssuedId(seq_id=int(outcome.last_row_id), pfid=pfid, type=type_tag)

    def lookup(self, pfid: uuid.UUID) -> IssuedId | None:
        """Return the issued row for ``pfid`` or ``None``."""
        row = self._store.find_by_pfid(*split_uuid(pfid))
        if row is None:
            return None
        return IssuedId(seq_id=int(row["seqID"]), pfid=pfid, type=row["type"])
