"""
Infrastructure layer for the coordination core.

Contains adapters for external concerns (file locks, case files, evidence).
"""

from caseguard.infrastructure.evidence import check_capture, seal_evidence
from caseguard.infrastructure.lock import FileLock
from caseguard.infrastructure.persistence import (
    FilesystemCaseStore,
    FilesystemLedger,
)

__all__ = [
    # Locking
    "FileLock",
    # Persistence
    "FilesystemCaseStore",
    "FilesystemLedger",
    # Evidence
    "seal_evidence",
    "check_capture",
]
