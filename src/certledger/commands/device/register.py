# certledger/commands/device/register.py

from __future__ import annotations

import argparse

from .actions import (
    handle_device_register,
    handle_device_show,
    handle_device_unregistered,
)
from certledger.constants import EXIT_OK
from certledger.models import App


def _add_unregistered_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `device unregistered`
    """

    parser = actions.add_parser("unregistered",
        help="List devices holding certificates that are not yet registered")

    parser.set_defaults(handler=handle_device_unregistered)

    return parser

def _add_register_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `device register`
    """

    parser = actions.add_parser("register",
        help="Record that a device has been registered with the cloud service")
    parser.add_argument("-i", "--id",
        required=True,
        dest="device_id",
        help="Device identifier")

    parser.set_defaults(handler=handle_device_register)

    return parser

def _add_show_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `device show`
    """

    parser = actions.add_parser("show",
        help="Show a device's registration state")
    parser.add_argument("-i", "--id",
        required=True,
        dest="device_id",
        help="Device identifier")

    parser.set_defaults(handler=handle_device_show)

    return parser

def register(subparsers: argparse._SubParsersAction) -> None:
    """
    Register the `device` command and its actions.
    """
    parser = subparsers.add_parser(
        "device",
        add_help=True,
        help="Perform device registration actions",
    )

    actions = parser.add_subparsers(
        title="Actions",
        dest="action",
    )

    _add_unregistered_subcommand(actions)
    _add_register_subcommand(actions)
    _add_show_subcommand(actions)

    parser.set_defaults(handler=_show_help, _parser=parser)

def _show_help(app: App):
    app.args._parser.print_help()
    return EXIT_OK
