# certledger/commands/database/actions.py

from __future__ import annotations

import logging

from certledger.models import App
from certledger.constants import EXIT_OK
from certledger.utils.formatting import print_result, title

log = logging.getLogger(__name__)


def handle_database_init(app: App) -> int:
    title("Database init", level=2, extra=app.config.database)

    title("Creating ledger schema", 9)
    print_result(app.store.schema_version > 0)

    return EXIT_OK

def handle_database_export(app: App) -> int:
    title("Database export", level=2)

    print(app.store.export_database().decode('utf-8'))

    return EXIT_OK
