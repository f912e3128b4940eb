#!/usr/bin/env python3
"""
#
# certledger - Certificate Authority Ledger
#

Operator tool for the ledger behind a certificate authority: allocate serials,
check and revoke certificates, and track device registration.

Requirements:
  - Python 3.8+
  - Pydantic v2 - https://docs.pydantic.dev

"""
from __future__ import annotations

import argparse
import logging
from typing import Optional, Callable

from certledger import __version__, __title__, __short_title__
from .constants import DEFAULT_BUSY_TIMEOUT, DEFAULT_DATABASE, DEFAULT_RETRY_POLICY, EXIT_FATAL
from .commands import register_all
from .commands.helpers import prune_opts
from .models import App, LedgerConfig
from .services.serial import RetryPolicy
from .utils.formatting import title, error

from .services.ledger_errors import LedgerError


def build_parser(prog_desc: str) -> argparse.ArgumentParser:
    """ Build the command line argument parser """

    parser = argparse.ArgumentParser(
        description=prog_desc,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("-d", "--database",
        default=DEFAULT_DATABASE,
        help="Ledger SQLite database file"
    )

    parser.add_argument("--timeout",
        type=float,
        default=DEFAULT_BUSY_TIMEOUT,
        help="Seconds to wait for a locked database"
    )

    retry = parser.add_argument_group("serial allocation")
    retry.add_argument("--max-attempts",
        type=int,
        default=DEFAULT_RETRY_POLICY['max_attempts'],
        help="Give up allocating a serial after this many collisions"
    )
    retry.add_argument("--base-delay",
        type=float,
        default=DEFAULT_RETRY_POLICY['base_delay'],
        help="Seconds to wait after the first collision"
    )
    retry.add_argument("--max-delay",
        type=float,
        default=DEFAULT_RETRY_POLICY['max_delay'],
        help="Upper bound on the wait between attempts, before jitter"
    )
    retry.add_argument("--deadline",
        type=float,
        default=DEFAULT_RETRY_POLICY['deadline'],
        help="Give up allocating a serial after this many seconds"
    )

    parser.add_argument("--log-level",
        default="WARNING",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Set logging verbosity",
    )

    parser.add_argument("--version",
        action="version",
        version=f"{__title__} {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command", required=True)

    register_all(subparsers)

    return parser

def build_config(args: argparse.Namespace) -> LedgerConfig:
    """ Collect the ledger settings from parsed arguments """

    return LedgerConfig(
        database=args.database,
        timeout=args.timeout,
        retry=prune_opts(RetryPolicy, args),
    )

# ---------------------
# Entry point
# ---------------------

def main(argv: Optional[list[str]] = None) -> int:

    description: str = f'{__title__} - {__short_title__} v{__version__}'

    parser: argparse.ArgumentParser = build_parser(description)
    args: argparse.Namespace = parser.parse_args(argv)
    handler: Optional[Callable[[App], int]] = getattr(args, "handler", None)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    title(description, 1)

    if handler is None:
        logging.error("Unknown command: %s", getattr(args, "command", None))
        return EXIT_FATAL

    try:
        app: App = App.from_args(args=args, config=build_config(args))
    except LedgerError as e:
        error(str(e))
        return EXIT_FATAL
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    try:
        return handler(app)

    except LedgerError as e:
        # Storage failures and exhausted serial allocation
        error(str(e))
        return EXIT_FATAL
    except SystemExit:
        raise
    except Exception:
        logging.exception("Unexpected error")
        return EXIT_FATAL
    finally:
        app.close()

if __name__ == "__main__":
    raise SystemExit(main())
