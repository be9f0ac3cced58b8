"""Two-party balance transfer.

Both balance writes share one transaction: there is no commit between them,
so a failure on the second write rolls back the first as well.
"""

from __future__ import annotations

import logging
from typing import Any

from profundus_ledger.db.ledger_repo import LedgerStore
from profundus_ledger.db.types import WriteOutcome

logger = logging.getLogger(__name__)


class TransferCoordinator:
    """Applies paired balance updates atomically."""

    def __init__(self, ledger: LedgerStore) -> None:
        self._ledger = ledger

    def transfer(
        self,
        self_name: str,
        self_new_amount: int,
        partner_name: str,
        partner_new_amount: int,
    ) -> WriteOutcome:
        """
        Set both balances in a single transaction.

        The caller computes the resulting balances. Values are stored exactly
        as given; non-negative checks belong to the calling layer. No retry is
        attempted.

        Returns:
            Successful ``WriteOutcome`` when both balances were committed.
            Otherwise a failed outcome carrying the cause, with neither
            balance changed.
        """

        def work(cursor: Any) -> WriteOutcome:
            self._ledger._update_amount(self_name, self_new_amount)
            self._ledger._update_amount(partner_name, partner_new_amount)
            return WriteOutcome.success(rows_affected=2)

        outcome = self._ledger.table.write("ledger.transfer", work)
        if outcome:
            logger.info(
                "Transfer committed: %s=%d, %s=%d",
                self_name,
                self_new_amount,
                partner_name,
                partner_new_amount,
            )
        return outcome
