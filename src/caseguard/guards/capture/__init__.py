"""
Capture guards - evidence metadata validation.

Stub detection and signature checks are pure; FileHashGuard reads the
captured files.
"""

from caseguard.guards.capture.file_hash import FileHashGuard, hash_bytes, hash_file
from caseguard.guards.capture.signature import (
    SIGNATURE_SALT,
    SIGNATURE_VERSION,
    CaptureSignatureGuard,
    sign,
    verify,
)
from caseguard.guards.capture.stub import STUB_FIELDS, StubFieldGuard

__all__ = [
    "SIGNATURE_SALT",
    "SIGNATURE_VERSION",
    "STUB_FIELDS",
    "sign",
    "verify",
    "hash_bytes",
    "hash_file",
    "StubFieldGuard",
    "CaptureSignatureGuard",
    "FileHashGuard",
]
