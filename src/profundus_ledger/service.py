"""Storage service wiring.

``LedgerService`` owns one ``ConnectionManager`` and hands it to every
component, so the connection lifecycle is explicit and scoped to the service
instance rather than to the process.

Usage:
    from profundus_ledger.service import LedgerService

    with LedgerService() as service:
        service.ledger.create_record("alice")
        service.transfers.transfer("alice", 0, "bob", 0)
"""

from __future__ import annotations

import logging

from profundus_ledger.config import DatabaseSettings
from profundus_ledger.db.connection import ConnectionManager
from profundus_ledger.db.ledger_repo import LedgerStore
from profundus_ledger.db.schema import SchemaManager, TableKind
from profundus_ledger.db.table_store import ProfundusIdStore, TableStore, store_for
from profundus_ledger.db.transfer import TransferCoordinator
from profundus_ledger.identifiers import ProfundusIdRegistry

logger = logging.getLogger(__name__)


class LedgerService:
    """
    All ledger components bound to one connection manager.

    Args:
        settings: Database settings; defaults to the loaded configuration.
        manager: Pre-built connection manager (mostly for tests). Takes
            precedence over ``settings``.
    """

    def __init__(
        self,
        settings: DatabaseSettings | None = None,
        *,
        manager: ConnectionManager | None = None,
    ) -> None:
        self.connection = manager or ConnectionManager(settings)
        self.schema = SchemaManager(self.connection)
        self.ledger = LedgerStore(self.connection, self.schema)
        self.transfers = TransferCoordinator(self.ledger)
        pfid_store = ProfundusIdStore(self.connection, self.schema)
        self.tables: dict[TableKind, TableStore] = {
            kind: store_for(kind, self.connection, self.schema)
            for kind in TableKind
            if kind is not TableKind.PROFUNDUS_ID
        }
        self.tables[TableKind.PROFUNDUS_ID] = pfid_store
        self.ids = ProfundusIdRegistry(pfid_store)

    def open(self) -> LedgerService:
        """Connect and make sure every table exists."""
        self.connection.connect()
        failed = [name for name, ok in self.schema.ensure_all().items() if not ok]
        if failed:
            logger.warning("Tables unavailable after startup: %s", ", ".join(failed))
        return self

    def close(self) -> None:
        self.connection.disconnect()

    def __enter__(self) -> LedgerService:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
