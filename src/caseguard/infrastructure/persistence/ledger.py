"""
Filesystem ledger: ledger.json, an append-only log of coordination events.

The whole file is rewritten on each append (temp + rename) under the
``ledger.json`` lock, so concurrent appenders never lose an entry or
duplicate an ID.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import jsonschema

from caseguard import schemas
from caseguard.config import CoordinationConfig
from caseguard.domain.codec import ledger_entry_from_dict, ledger_entry_to_dict
from caseguard.domain.exceptions import CaseFileError, EvidenceMissing
from caseguard.domain.identifiers import LEDGER_PREFIX, format_id
from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.ledger import LedgerEntryType, build_fields, parse_entry_type
from caseguard.domain.models import LedgerEntry, format_timestamp, utc_now
from caseguard.infrastructure.atomic import read_json, write_json_atomic
from caseguard.infrastructure.evidence import captured_file_count, check_capture
from caseguard.infrastructure.lock import FileLock, lock_path_for

logger = logging.getLogger("caseguard.ledger")

LEDGER_FILE = "ledger.json"


class FilesystemLedger:
    """Ledger stored as a single JSON document in the case directory."""

    def __init__(
        self,
        case_dir: str | Path,
        config: CoordinationConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        evidence_guard: EvidenceGuardInterface | None = None,
    ):
        self.case_dir = Path(case_dir)
        self.path = self.case_dir / LEDGER_FILE
        self._config = config or CoordinationConfig()
        self._clock = clock
        self._evidence_guard = evidence_guard

    def _lock(self) -> FileLock:
        return FileLock(
            lock_path_for(self.path),
            timeout=self._config.lock_timeout,
            retry_interval=self._config.lock_retry_interval,
            stale_after=self._config.lock_stale_after,
            clock=self._clock,
        )

    def _empty(self) -> dict[str, Any]:
        now = format_timestamp(self._clock())
        return {
            "case_id": self.case_dir.resolve().name,
            "created_at": now,
            "last_updated": now,
            "entries": [],
        }

    def _load(self) -> dict[str, Any] | None:
        try:
            data = read_json(self.path)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise CaseFileError(str(self.path), f"invalid JSON: {e}") from e
        try:
            schemas.validate_ledger(data)
        except jsonschema.ValidationError as e:
            raise CaseFileError(str(self.path), e.message) from e
        data.setdefault("entries", [])
        return data

    def init(self) -> None:
        """Create an empty ledger, replacing any existing one."""
        with self._lock().held():
            write_json_atomic(self.path, self._empty())
        logger.info("Initialized %s", self.path)

    def append(self, entry_type: str | LedgerEntryType, **fields: Any) -> LedgerEntry:
        """
        Validate and append one entry.

        ``fields`` may use field names or their command-line aliases
        (``--output`` -> ``output_expected``). ``source_capture`` entries are
        accepted only for evidence that verifies; otherwise nothing is written.

        Raises:
            LedgerError: Unknown type, undeclared or missing fields
            EvidenceMissing: source_capture evidence directory or metadata absent
            SignatureInvalid: source_capture metadata fails verification
            LockTimeout: If the ledger lock cannot be acquired
        """
        if not isinstance(entry_type, LedgerEntryType):
            entry_type = parse_entry_type(entry_type)
        values = build_fields(entry_type, fields)

        if entry_type == LedgerEntryType.SOURCE_CAPTURE:
            values = self._check_source_capture(values, "file_count" in values)

        with self._lock().held():
            ledger = self._load() or self._empty()
            entry = LedgerEntry(
                id=format_id(LEDGER_PREFIX, len(ledger["entries"]) + 1),
                type=entry_type.value,
                ts=format_timestamp(self._clock()),
                fields=values,
            )
            ledger["entries"].append(ledger_entry_to_dict(entry))
            ledger["last_updated"] = entry.ts
            write_json_atomic(self.path, ledger)

        logger.debug("%s | %s", entry.id, entry.type)
        return entry

    def _check_source_capture(
        self, values: dict[str, Any], explicit_count: bool
    ) -> dict[str, Any]:
        source_id = values["source_id"]
        evidence_dir = self.case_dir / values["evidence_path"]
        if not evidence_dir.exists():
            raise EvidenceMissing(source_id, f"evidence path does not exist: {evidence_dir}")
        check_capture(evidence_dir, source_id, self._evidence_guard)
        checked = dict(values)
        if not explicit_count:
            checked["file_count"] = captured_file_count(evidence_dir)
        checked["signature_valid"] = True
        return checked

    def entries(self, entry_type: str | LedgerEntryType | None = None) -> list[LedgerEntry]:
        ledger = self._load()
        if ledger is None:
            return []
        wanted = None
        if entry_type is not None:
            wanted = parse_entry_type(entry_type) if isinstance(entry_type, str) else entry_type
        return [
            ledger_entry_from_dict(item)
            for item in ledger["entries"]
            if wanted is None or item.get("type") == wanted.value
        ]
