# certledger/models/app.py

import logging
import os
from argparse import Namespace
from dataclasses import dataclass

from certledger.constants import MEMORY_DATABASE
from certledger.models.config import LedgerConfig
from certledger.services.ledger import CertificateLedger
from certledger.services.ledger_errors import LedgerNotFoundError
from certledger.services.serial import SerialAllocator
from certledger.services.store import SQLiteStore
from certledger.utils.formatting import warning

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """
    Lightweight application context passed to all handlers.
    Holds the opened store and ledger plus the runtime config.
    """
    args: Namespace
    config: LedgerConfig
    store: SQLiteStore
    ledger: CertificateLedger

    @classmethod
    def from_args(cls, args: Namespace, config: LedgerConfig) -> "App":
        cmd = getattr(args, "command", "")
        action = getattr(args, "action", "")

        # initlike: commands allowed to run without an existing ledger (they create it)
        initlike = cmd == "database" and action == "init"
        in_memory = config.database == MEMORY_DATABASE

        if in_memory:
            warning("Using an in-memory ledger; nothing will be kept after exit.")
        elif not initlike and not os.path.exists(config.database):
            raise LedgerNotFoundError(
                f"Ledger database {config.database} not found. Run 'database init' first."
            )

        store = SQLiteStore(config.database, timeout=config.timeout,
                            create_schema=initlike or in_memory)

        if store.schema_version == 0:
            store.close()
            raise LedgerNotFoundError(f"Ledger database {config.database} has no schema.")

        log.debug("Opened ledger %s (schema v%d)", config.database, store.schema_version)

        allocator = SerialAllocator(store, config.retry)

        return cls(args=args, config=config, store=store,
                   ledger=CertificateLedger(store, allocator=allocator))

    def close(self) -> None:
        self.store.close()
