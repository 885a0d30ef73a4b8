"""
Persistence adapters for the case directory.
"""

from caseguard.infrastructure.persistence.case_store import FilesystemCaseStore
from caseguard.infrastructure.persistence.ledger import FilesystemLedger

__all__ = [
    "FilesystemCaseStore",
    "FilesystemLedger",
]
