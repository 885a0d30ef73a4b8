"""
Capture signatures.

A capture tool signs the metadata it writes with a salted SHA-256 over the
source identity, capture time and the sorted file hashes. Anything that
edits the metadata afterwards, or writes it without the tool, produces a
signature that no longer matches.

This catches an agent claiming a capture that never happened. It is not a
defence against an operator who can read the salt.
"""

import hashlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.models import VerificationResult
from caseguard.guards.capture.stub import check_stub

SIGNATURE_VERSION = "v2"
SIGNATURE_SALT = "caseguard-capture-2026-integrity"
SIGNATURE_HEX_LENGTH = 32

SIGNATURE_KEY = "_capture_signature"
VERSION_KEY = "_signature_version"


def _file_hashes(files: Mapping[str, Any]) -> list[str]:
    hashes = []
    for entry in files.values():
        value = entry.get("hash") if isinstance(entry, Mapping) else getattr(entry, "hash", None)
        if value:
            hashes.append(value)
    return sorted(hashes)


def _malformed_field(metadata: Mapping[str, Any], files: Mapping[str, Any]) -> str | None:
    """Name the first signed field that is not a string, if any."""
    version = metadata.get(VERSION_KEY)
    if version is not None and not isinstance(version, str):
        return f"{VERSION_KEY} is not a string"
    for kind, entry in files.items():
        if not isinstance(entry, Mapping):
            return f"File '{kind}' is not an object"
        value = entry.get("hash")
        if value is not None and not isinstance(value, str):
            return f"File '{kind}' hash is not a string"
    return None


def sign(
    source_id: str,
    url: str,
    captured_at: str,
    files: Mapping[str, Any],
    version: str = SIGNATURE_VERSION,
    salt: str = SIGNATURE_SALT,
) -> str:
    """
    Compute the capture signature.

    Args:
        source_id: Source the evidence belongs to
        url: Captured URL
        captured_at: ISO timestamp written into the metadata
        files: ``{kind: {"path", "hash", ...}}``; entries without a hash are ignored
        version: Signature scheme version
        salt: Secret mixed into the digest

    Returns:
        ``sig_<version>_<32 hex chars>``
    """
    payload = ":".join(
        [version, source_id, url, captured_at, "|".join(_file_hashes(files)), salt]
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"sig_{version}_{digest[:SIGNATURE_HEX_LENGTH]}"


def verify(metadata: Mapping[str, Any]) -> VerificationResult:
    """
    Check raw metadata.json contents.

    Rules, in order: stub fields reject; a missing signature passes only for
    legacy captures (non-empty ``files`` plus ``method``); ``files`` must be
    present; the recomputed signature must match exactly.
    """
    rejection = check_stub(metadata)
    if rejection is not None:
        return rejection

    files = metadata.get("files")
    signature = metadata.get(SIGNATURE_KEY)
    if not signature:
        if isinstance(files, Mapping) and files and metadata.get("method"):
            return VerificationResult(
                valid=True, reason="Legacy capture (pre-signature) with valid files"
            )
        return VerificationResult(
            valid=False,
            reason=f"Missing {SIGNATURE_KEY} - evidence not created by a capture tool",
        )

    if not isinstance(files, Mapping):
        return VerificationResult(valid=False, reason="Missing files field - invalid capture")
    malformed = _malformed_field(metadata, files)
    if malformed is not None:
        return VerificationResult(valid=False, reason=malformed)

    expected = sign(
        str(metadata.get("source_id", "")),
        str(metadata.get("url", "")),
        str(metadata.get("captured_at", "")),
        files,
        version=metadata.get(VERSION_KEY) or SIGNATURE_VERSION,
    )
    if signature != expected:
        return VerificationResult(valid=False, reason="signature mismatch")
    return VerificationResult(valid=True, reason="Signature valid")


class CaptureSignatureGuard(EvidenceGuardInterface):
    """Guard wrapper around ``verify``."""

    def validate(
        self, metadata: Mapping[str, Any], evidence_dir: Path | None = None
    ) -> VerificationResult:
        return verify(metadata)
