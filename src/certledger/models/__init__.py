# certledger/models/__init__.py

from .app import App
from .config import LedgerConfig

__all__ = ["App", "LedgerConfig"]
