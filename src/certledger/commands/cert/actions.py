# certledger/commands/cert/actions.py

from __future__ import annotations

import logging

from certledger.models import App
from certledger.constants import (
    EXIT_OK,
    EXIT_VALIDATION_ERROR,
    COLOUR_BRIGHT,
    COLOUR_RESET,
)
from certledger.services.ledger_errors import UnknownSerialError
from certledger.utils.datetime import format_datetime
from certledger.utils.formatting import error, print_result, title

log = logging.getLogger(__name__)


def handle_cert_serial(app: App) -> int:
    title("Allocate serial", level=2)

    print(app.ledger.allocator.allocate())

    return EXIT_OK

def handle_cert_valid(app: App) -> int:
    title("Certificate validity", level=2, extra=app.args.serial)

    try:
        valid = app.ledger.is_valid(app.args.serial)
    except UnknownSerialError as e:
        error(str(e))
        return EXIT_VALIDATION_ERROR

    title(f'Serial {COLOUR_BRIGHT}{app.args.serial}{COLOUR_RESET}', 9)
    print_result(valid, ok_msg='VALID ', failed_msg='REVOKED')

    return EXIT_OK if valid else EXIT_VALIDATION_ERROR

def handle_cert_revoke(app: App) -> int:
    title("Revoke certificate", level=2, extra=app.args.serial)

    try:
        app.ledger.revoke_certificate(app.args.serial)
    except UnknownSerialError as e:
        error(str(e))
        return EXIT_VALIDATION_ERROR

    title(f'Revoking {COLOUR_BRIGHT}{app.args.serial}{COLOUR_RESET}', 9)
    print_result(True)

    return EXIT_OK

def handle_cert_list(app: App) -> int:
    title("Device certificates", level=2, extra=app.args.device_id)

    records = app.ledger.list_certificates(app.args.device_id)

    if not records:
        log.info("No certificates recorded for %s", app.args.device_id)

    for record in records:
        status = "Valid" if record.valid else "Revoked"
        title(f"{record.serial}  {record.name:<30} {format_datetime(record.expiry, 'text')}  {status}", 7)

    return EXIT_OK
