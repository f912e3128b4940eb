# certledger/constants.py

"""
Standardised exit codes for certledger CLI commands.

0 = success
1 = validation errors (unknown serial or device, certificate not valid)
2 = fatal errors (storage failures, unsupported args, unhandled exceptions)
"""
from __future__ import annotations

EXIT_OK: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_FATAL: int = 2

# ---- ANSI Colour Codes ----
COLOUR = {
    'green': '\033[32m',
    'cyan': '\033[36m',
    'bold_red': '\033[1;31m',
    'bold_yellow': '\033[1;33m',
    'bold_white': '\033[1;37m',
    'reset': '\033[0m'
}

# Convenience shortcuts
COLOUR_ERROR = COLOUR['bold_red']
COLOUR_OK = COLOUR['green']
COLOUR_BRIGHT = COLOUR['bold_white']
COLOUR_WARNING = COLOUR['bold_yellow']
COLOUR_RESET = COLOUR['reset']

# ---- Database defaults ----
DEFAULT_DATABASE = 'certledger.db'
MEMORY_DATABASE = ':memory:'
DEFAULT_BUSY_TIMEOUT = 5.0
SCHEMA_VERSION = 1

# ---- Serial allocation defaults ----
# base_delay should outlast the wall clock's update granularity
DEFAULT_RETRY_POLICY = {
    'max_attempts': 100,
    'base_delay': 0.001,
    'max_delay': 0.05,
    'multiplier': 2.0,
    'jitter': 0.5,
    'deadline': None,
}

# ---- View defaults ----
STATUS_COLUMN = 70
