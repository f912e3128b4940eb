# certledger/__init__.py

"""
certledger - Certificate Authority Ledger
=========================================

Persistence layer for a certificate-issuing authority: unique serial number
allocation, transactional certificate and device bookkeeping, and tracking of
devices registered with an external cloud service.
"""

# ---- Package metadata ----
__version__ = "0.3.0"
__title__ = "Certificate Authority Ledger"
__short_title__ = "certledger"
__license__ = "MIT"


# ---- Public exports ----
__all__ = [
    "__version__",
    "__title__",
    "__short_title__",
    "__license__",
]
