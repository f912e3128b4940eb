# certledger/services/ledger_errors.py

class LedgerError(Exception):
    """Base class for certificate ledger errors."""


class NonUniqueSerialError(LedgerError):
    """Raised when a serial candidate collides with an issued certificate."""


class SerialExhaustedError(LedgerError):
    """Raised when the serial retry policy gives up."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No unique serial found after {attempts} attempt(s)")
        self.attempts = attempts


class UnknownSerialError(LedgerError):
    """Raised when no certificate carries the requested serial."""

    def __init__(self, serial: int) -> None:
        super().__init__(f"serial {serial}: unknown certificate")
        self.serial = serial


class LedgerStorageError(LedgerError):
    """Raised when the underlying store fails for any other reason."""

    def __init__(self, operation: str, subject: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed for {subject}: {cause}")
        self.operation = operation
        self.subject = subject
        self.cause = cause


class LedgerNotFoundError(LedgerError):
    """Raised when a ledger database file is missing or was never initialised."""
