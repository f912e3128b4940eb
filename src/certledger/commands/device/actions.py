# certledger/commands/device/actions.py

from __future__ import annotations

import logging

from certledger.models import App
from certledger.constants import (
    EXIT_OK,
    EXIT_VALIDATION_ERROR,
    COLOUR_BRIGHT,
    COLOUR_RESET,
)
from certledger.utils.formatting import error, print_result, title, warning

log = logging.getLogger(__name__)


def handle_device_unregistered(app: App) -> int:
    title("Unregistered devices", level=2)

    for device_id in app.ledger.list_unregistered_devices():
        print(device_id)

    return EXIT_OK

def handle_device_register(app: App) -> int:
    title("Register device", level=2, extra=app.args.device_id)

    app.ledger.mark_registered(app.args.device_id)

    if app.ledger.get_device(app.args.device_id) is None:
        warning(f"No certificate recorded for {app.args.device_id}; nothing to mark")
        return EXIT_OK

    title(f'Marking {COLOUR_BRIGHT}{app.args.device_id}{COLOUR_RESET} registered', 9)
    print_result(True)

    return EXIT_OK

def handle_device_show(app: App) -> int:
    title("Device", level=2, extra=app.args.device_id)

    device = app.ledger.get_device(app.args.device_id)

    if device is None:
        error(f"device {app.args.device_id!r}: unknown device")
        return EXIT_VALIDATION_ERROR

    certs = app.ledger.list_certificates(device.device_id)

    title(f"Registered: {'yes' if device.registered else 'no'}", 7)
    title(f"Certificates: {len(certs)}", 7)

    return EXIT_OK
