"""
On-disk file hash guard.

Re-hashes every captured file and compares it with the hash recorded in the
metadata. A valid signature only proves the metadata is untouched; this
proves the files it describes are too.
"""

import hashlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.models import VerificationResult

HASH_PREFIX = "sha256:"
_CHUNK = 1 << 16


def hash_bytes(data: bytes) -> str:
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def hash_file(path: Path) -> str:
    """``sha256:<hex>`` of a file's contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            digest.update(chunk)
    return HASH_PREFIX + digest.hexdigest()


class FileHashGuard(EvidenceGuardInterface):
    """Requires the evidence directory; reads every file it lists."""

    def validate(
        self, metadata: Mapping[str, Any], evidence_dir: Path | None = None
    ) -> VerificationResult:
        if evidence_dir is None:
            return VerificationResult(valid=False, reason="No evidence directory to hash")

        files = metadata.get("files")
        if not isinstance(files, Mapping) or not files:
            return VerificationResult(valid=False, reason="No files recorded")

        for kind, entry in files.items():
            path_value = entry.get("path") if isinstance(entry, Mapping) else None
            if not isinstance(path_value, str) or not path_value:
                return VerificationResult(valid=False, reason=f"File '{kind}' has no path")
            recorded = entry.get("hash")
            if not recorded:
                continue
            if not isinstance(recorded, str):
                return VerificationResult(
                    valid=False, reason=f"File '{kind}' hash is not a string"
                )
            path = evidence_dir / entry["path"]
            if not path.is_file():
                return VerificationResult(
                    valid=False, reason=f"File '{kind}' missing: {entry['path']}"
                )
            actual = hash_file(path)
            if recorded.removeprefix(HASH_PREFIX) != actual.removeprefix(HASH_PREFIX):
                return VerificationResult(
                    valid=False, reason=f"File '{kind}' hash mismatch: {entry['path']}"
                )
        return VerificationResult(valid=True, reason="File hashes match")
