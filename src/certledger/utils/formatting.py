# certledger/utils/formatting.py

from __future__ import annotations

import sys
from certledger.constants import COLOUR, COLOUR_BRIGHT, COLOUR_RESET
from certledger.constants import COLOUR_ERROR, COLOUR_OK, COLOUR_WARNING
from certledger.constants import STATUS_COLUMN

def title(text: str, level: int=1, extra=None) -> None:
    """
    Prints a title in a consistant format

    Args:
        text (str): The text to be displayed
        level (int):  The level of heading (optional)
        extra (str): Highlighted detail shown beside a level 2 heading
    """

    if level == 1:
        if extra is None:
            extra = '---===oooO'

        print(f"{extra} {COLOUR['bold_yellow']}{text}{COLOUR_RESET} {extra[::-1]}\n")

    elif level == 2:
        if extra is not None:
            print(f"{COLOUR['bold_yellow']}{text}{COLOUR_RESET} [ {COLOUR_BRIGHT}{extra}{COLOUR_RESET} ]\n")
        else:
            print(f"{COLOUR['bold_yellow']}{text}{COLOUR_RESET}\n")

    elif level == 7:
        print(f'{text}')

    elif level == 9:
        print(f'{text}...', end='')

    else:
        print(f"{COLOUR['cyan']}{text}{COLOUR_RESET}\n")

def print_result(success, *, ok_msg='  OK  ', failed_msg='FAILED') -> bool:
    """
    Prints a ANSI success or failure message in a RedHat theme

    Args:
        success (bool): Success test condition
        ok_msg (str): OK message text
        failed_msg (str): Failed message text
    """

    column = f'\033[{STATUS_COLUMN}G'

    if success:
        msg = ok_msg
        msg_colour = COLOUR_OK
    else:
        msg = failed_msg
        msg_colour = COLOUR_ERROR

    print(f'{column}[ {msg_colour}{msg}{COLOUR_RESET} ]')

    return bool(success)

def error(text: str, exit_code: int=0) -> None:
    """
    Prints an error message to stderr, exiting when given a non-zero code.

    Args:
        text (str): The error message to be displayed.
        exit_code (int): The exit code to give
    """

    print(f'{COLOUR_ERROR}Error:{COLOUR_RESET} {text}', file=sys.stderr)

    if exit_code != 0:
        sys.exit(exit_code)

def warning(text: str) -> None:
    """ Prints a warning message to stderr """

    print(f'{COLOUR_WARNING}Warning:{COLOUR_RESET} {text}', file=sys.stderr)
