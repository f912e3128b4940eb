# certledger/commands/cert/register.py

from __future__ import annotations

import argparse

from .actions import (
    handle_cert_list,
    handle_cert_revoke,
    handle_cert_serial,
    handle_cert_valid,
)
from certledger.constants import EXIT_OK
from certledger.models import App


def _add_serial_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `cert serial`
    """

    parser = actions.add_parser("serial",
        help="Allocate a serial number not held by any recorded certificate")

    parser.set_defaults(handler=handle_cert_serial)

    return parser

def _add_valid_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `cert valid`
    """

    parser = actions.add_parser("valid",
        help="Check whether the certificate with a serial is still valid")
    parser.add_argument("-s", "--serial",
        required=True,
        type=int,
        help="Certificate serial number")

    parser.set_defaults(handler=handle_cert_valid)

    return parser

def _add_revoke_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `cert revoke`
    """

    parser = actions.add_parser("revoke",
        help="Mark a certificate as no longer valid")
    parser.add_argument("-s", "--serial",
        required=True,
        type=int,
        help="Serial number of the certificate to revoke")

    parser.set_defaults(handler=handle_cert_revoke)

    return parser

def _add_list_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `cert list`
    """

    parser = actions.add_parser("list",
        help="List the certificates issued to a device")
    parser.add_argument("-i", "--id",
        required=True,
        dest="device_id",
        help="Device identifier")

    parser.set_defaults(handler=handle_cert_list)

    return parser

def register(subparsers: argparse._SubParsersAction) -> None:
    """
    Register the `cert` command and its actions.
    """
    parser = subparsers.add_parser(
        "cert",
        add_help=True,
        help="Perform certificate ledger actions",
    )

    actions = parser.add_subparsers(
        title="Actions",
        dest="action",
    )

    _add_serial_subcommand(actions)
    _add_valid_subcommand(actions)
    _add_revoke_subcommand(actions)
    _add_list_subcommand(actions)

    parser.set_defaults(handler=_show_help, _parser=parser)

def _show_help(app: App):
    app.args._parser.print_help()
    return EXIT_OK
