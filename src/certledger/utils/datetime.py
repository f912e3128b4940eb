# certledger/utils/datetime.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

OutputFormat = Literal["openssl", "text"]

_FORMATS = {
    "openssl": "%Y%m%d%H%M%SZ",
    "text": "%b %d %H:%M:%S %Y UTC",
}


def _ensure_utc(dt: datetime) -> datetime:
    """
    Return a timezone-aware datetime in UTC.
    A naive `dt` is treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def _pattern(fmt: str) -> str:
    try:
        return _FORMATS[fmt]
    except KeyError:
        raise ValueError(f"Invalid date format: {fmt!r}") from None

def format_datetime(date: datetime, output_format: OutputFormat = "openssl") -> str:
    """
    Format a datetime in UTC.

    Args:
        date: The datetime to format (naive treated as UTC).
        output_format: One of:
            - "openssl" → '%Y%m%d%H%M%SZ' (the ledger's expiry column format)
            - "text"    → '%b %d %H:%M:%S %Y UTC'

    Returns:
        The formatted datetime string.
    """
    return _ensure_utc(date).strftime(_pattern(output_format))

def now_utc() -> datetime:
    """Return current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)

def parse_datetime(value: str, input_format: OutputFormat = "openssl") -> datetime:
    """
    Parse a datetime string (e.g., from the DB) into a UTC-aware datetime.
    """
    return datetime.strptime(value, _pattern(input_format)).replace(tzinfo=timezone.utc)
