# certledger/commands/database/register.py

from __future__ import annotations

import argparse

from .actions import handle_database_export, handle_database_init
from certledger.constants import EXIT_OK
from certledger.models import App


def _add_init_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `database init`
    """

    parser = actions.add_parser('init',
        help='Create the ledger tables in the database')

    parser.set_defaults(handler=handle_database_init)

    return parser

def _add_export_subcommand(actions: argparse._SubParsersAction) -> argparse.ArgumentParser:
    """
    Register `database export`
    """

    parser = actions.add_parser('export',
        help='Export the entire ledger database as SQL')

    parser.set_defaults(handler=handle_database_export)

    return parser

def register(subparsers: argparse._SubParsersAction) -> None:
    """
    Register the `database` command and its actions.
    """
    parser = subparsers.add_parser(
        'database',
        add_help=True,
        help='Perform Database actions',
    )

    actions = parser.add_subparsers(
        title='Actions',
        dest='action',
    )

    _add_init_subcommand(actions)
    _add_export_subcommand(actions)

    parser.set_defaults(handler=_show_help, _parser=parser)

def _show_help(app: App):
    app.args._parser.print_help()
    return EXIT_OK
