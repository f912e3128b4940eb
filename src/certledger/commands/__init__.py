# certledger/commands/__init__.py

from __future__ import annotations

import argparse

from . import cert, database, device

def register_all(subparsers: argparse._SubParsersAction) -> None:
    """
    Register all subcommands here
    """
    cert.register(subparsers)
    database.register(subparsers)
    device.register(subparsers)
