# certledger/services/store_errors.py

from typing import Optional


class StoreError(Exception):
    """Base class for errors raised by a ledger store backend."""


class StoreConstraintError(StoreError):
    """
    A write violated a table constraint.

    `constraint` names the violated uniqueness constraint as "table.column"
    when the backend can tell, otherwise None.
    """

    def __init__(self, message: str, constraint: Optional[str] = None) -> None:
        super().__init__(message)
        self.constraint = constraint
