"""
Evidence directories: sealing captures and loading their metadata.

``seal_evidence`` is the producer path a capture tool calls after writing
its files. ``load_metadata`` and ``check_capture`` are the consumer path
used before a capture is logged or a source gate is derived.
"""

import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from caseguard import schemas
from caseguard.domain.exceptions import EvidenceMissing, SignatureInvalid
from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.models import (
    EvidenceFile,
    EvidenceMetadata,
    VerificationResult,
    format_timestamp,
    utc_now,
)
from caseguard.guards.capture import CaptureSignatureGuard, hash_file, sign
from caseguard.guards.capture.signature import (
    SIGNATURE_KEY,
    SIGNATURE_VERSION,
    VERSION_KEY,
)
from caseguard.infrastructure.atomic import read_json, write_json_atomic

logger = logging.getLogger("caseguard.evidence")

METADATA_FILE = "metadata.json"
_METADATA_KEYS = {
    "source_id",
    "url",
    "captured_at",
    "files",
    "method",
    SIGNATURE_KEY,
    VERSION_KEY,
}


def metadata_to_dict(metadata: EvidenceMetadata) -> dict[str, Any]:
    data: dict[str, Any] = {
        "source_id": metadata.source_id,
        "url": metadata.url,
        "captured_at": metadata.captured_at,
    }
    if metadata.method is not None:
        data["method"] = metadata.method
    data["files"] = {
        kind: {
            "path": f.path,
            "hash": f.hash,
            **({"size": f.size} if f.size is not None else {}),
            **f.extra,
        }
        for kind, f in metadata.files.items()
    }
    data.update(metadata.extra)
    if metadata.capture_signature is not None:
        data[SIGNATURE_KEY] = metadata.capture_signature
    if metadata.signature_version is not None:
        data[VERSION_KEY] = metadata.signature_version
    return data


def metadata_from_dict(data: Mapping[str, Any]) -> EvidenceMetadata:
    files = {}
    for kind, entry in (data.get("files") or {}).items():
        files[kind] = EvidenceFile(
            path=entry.get("path", ""),
            hash=entry.get("hash", ""),
            size=entry.get("size"),
            extra={k: v for k, v in entry.items() if k not in ("path", "hash", "size")},
        )
    return EvidenceMetadata(
        source_id=data.get("source_id", ""),
        url=data.get("url", ""),
        captured_at=data.get("captured_at", ""),
        files=files,
        capture_signature=data.get(SIGNATURE_KEY),
        signature_version=data.get(VERSION_KEY),
        method=data.get("method"),
        extra={k: v for k, v in data.items() if k not in _METADATA_KEYS},
    )


def seal_evidence(
    evidence_dir: str | Path,
    source_id: str,
    url: str,
    files: Mapping[str, str],
    method: str,
    captured_at: str | None = None,
    clock: Callable[[], datetime] = utc_now,
    **extra: Any,
) -> EvidenceMetadata:
    """
    Hash captured files, sign the metadata and write metadata.json.

    Args:
        evidence_dir: Directory the capture tool wrote into
        source_id: Source the capture belongs to
        url: Captured URL
        files: ``{kind: path relative to evidence_dir}``
        method: Name of the capture method (e.g. 'firecrawl')
        captured_at: Capture timestamp, now when omitted
        **extra: Additional descriptive metadata (title, status code, ...)

    Raises:
        EvidenceMissing: If a named file does not exist
        jsonschema.ValidationError: If the assembled metadata is malformed
    """
    evidence_dir = Path(evidence_dir)
    captured_at = captured_at or format_timestamp(clock())

    records: dict[str, EvidenceFile] = {}
    for kind, relative in files.items():
        path = evidence_dir / relative
        if not path.is_file():
            raise EvidenceMissing(source_id, f"captured file not found: {path}")
        records[kind] = EvidenceFile(
            path=relative, hash=hash_file(path), size=path.stat().st_size
        )

    metadata = EvidenceMetadata(
        source_id=source_id,
        url=url,
        captured_at=captured_at,
        files=records,
        capture_signature=sign(source_id, url, captured_at, records),
        signature_version=SIGNATURE_VERSION,
        method=method,
        extra=extra,
    )
    data = metadata_to_dict(metadata)
    schemas.validate_evidence_metadata(data)
    write_json_atomic(evidence_dir / METADATA_FILE, data)
    logger.info("Sealed %s (%d files)", source_id, len(records))
    return metadata


def load_metadata(evidence_dir: Path, source_id: str | None = None) -> dict[str, Any]:
    """
    Read evidence_dir/metadata.json.

    Raises:
        EvidenceMissing: If the directory or metadata.json is absent or not JSON
    """
    if not evidence_dir.is_dir():
        raise EvidenceMissing(source_id, f"evidence path does not exist: {evidence_dir}")
    path = evidence_dir / METADATA_FILE
    try:
        data = read_json(path)
    except FileNotFoundError:
        raise EvidenceMissing(source_id, f"no {METADATA_FILE} in {evidence_dir}") from None
    except json.JSONDecodeError as e:
        raise EvidenceMissing(source_id, f"invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise EvidenceMissing(source_id, f"{path} is not a JSON object")
    return data


def captured_file_count(evidence_dir: Path) -> int:
    """Files other than metadata.json, hidden files excluded."""
    return sum(
        1
        for path in evidence_dir.iterdir()
        if path.name != METADATA_FILE and not path.name.startswith(".")
    )


def check_capture(
    evidence_dir: Path,
    source_id: str | None = None,
    guard: EvidenceGuardInterface | None = None,
) -> VerificationResult:
    """
    Load and validate a capture.

    Raises:
        EvidenceMissing: If the metadata cannot be loaded
        SignatureInvalid: If the guard rejects it
    """
    metadata = load_metadata(evidence_dir, source_id)
    result = (guard or CaptureSignatureGuard()).validate(metadata, evidence_dir)
    if not result.valid:
        logger.warning("Rejected capture %s: %s", source_id or evidence_dir, result.reason)
        raise SignatureInvalid(source_id or metadata.get("source_id"), result.reason)
    return result
