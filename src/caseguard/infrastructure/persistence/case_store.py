"""
Filesystem implementation of the case store.

Each shared file (state.json, leads.json, sources.json) is validated against
its JSON Schema on load and replaced atomically on save. Locks are marker
files beside the resource they guard.
"""

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager
from datetime import datetime
from pathlib import Path
from typing import Any

import jsonschema

from caseguard import schemas
from caseguard.config import CoordinationConfig
from caseguard.domain.codec import (
    catalog_from_dict,
    catalog_to_dict,
    leadbook_from_dict,
    leadbook_to_dict,
    state_from_dict,
    state_to_dict,
)
from caseguard.domain.exceptions import CaseFileError
from caseguard.domain.interfaces import (
    LEADS_FILE,
    SOURCES_FILE,
    STATE_FILE,
    CaseStoreInterface,
)
from caseguard.domain.models import CaseState, LeadBook, SourceCatalog, utc_now
from caseguard.infrastructure.atomic import (
    read_json,
    write_json_atomic,
    write_text_atomic,
)
from caseguard.infrastructure.lock import FileLock, lock_path_for

logger = logging.getLogger("caseguard.case_store")


class FilesystemCaseStore(CaseStoreInterface):
    """Case directory on a shared POSIX filesystem."""

    def __init__(
        self,
        case_dir: str | Path,
        config: CoordinationConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._case_dir = Path(case_dir)
        self._config = config or CoordinationConfig()
        self._clock = clock

    @property
    def case_dir(self) -> Path:
        return self._case_dir

    def _path(self, relative: str) -> Path:
        return self._case_dir / relative

    def lock_for(self, resource: str) -> FileLock:
        return FileLock(
            lock_path_for(self._path(resource)),
            timeout=self._config.lock_timeout,
            retry_interval=self._config.lock_retry_interval,
            stale_after=self._config.lock_stale_after,
            clock=self._clock,
        )

    def locked(self, resource: str) -> AbstractContextManager[None]:
        return self.lock_for(resource).held()

    def _load_validated(self, relative: str, schema: str) -> Any | None:
        """Parse and schema-check a case file, None when it does not exist."""
        path = self._path(relative)
        try:
            data = read_json(path)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise CaseFileError(str(path), f"invalid JSON: {e}") from e
        try:
            schemas.validate(schema, data)
        except jsonschema.ValidationError as e:
            raise CaseFileError(str(path), e.message) from e
        return data

    # -------------------------------------------------------------------------
    # Canonical files
    # -------------------------------------------------------------------------

    def load_state(self) -> CaseState:
        data = self._load_validated(STATE_FILE, "state")
        if data is None:
            raise CaseFileError(str(self._path(STATE_FILE)), "not found")
        return state_from_dict(data)

    def save_state(self, state: CaseState) -> None:
        write_json_atomic(self._path(STATE_FILE), state_to_dict(state))

    def load_leads(self) -> LeadBook:
        data = self._load_validated(LEADS_FILE, "leads")
        if data is None:
            return LeadBook(max_depth=self._config.default_max_depth)
        return leadbook_from_dict(data, self._config.default_max_depth)

    def save_leads(self, book: LeadBook) -> None:
        write_json_atomic(self._path(LEADS_FILE), leadbook_to_dict(book))

    def load_sources(self) -> SourceCatalog:
        data = self._load_validated(SOURCES_FILE, "sources")
        if data is None:
            return SourceCatalog()
        return catalog_from_dict(data)

    def save_sources(self, catalog: SourceCatalog) -> None:
        write_json_atomic(self._path(SOURCES_FILE), catalog_to_dict(catalog))

    # -------------------------------------------------------------------------
    # Auxiliary files
    # -------------------------------------------------------------------------

    def read_text(self, relative: str) -> str | None:
        path = self._path(relative)
        if not path.is_file():
            return None
        return path.read_text()

    def write_text(self, relative: str, text: str) -> None:
        write_text_atomic(self._path(relative), text)

    def read_json(self, relative: str) -> Any:
        path = self._path(relative)
        try:
            return read_json(path)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise CaseFileError(str(path), f"invalid JSON: {e}") from e

    def write_json(self, relative: str, data: Any) -> None:
        write_json_atomic(self._path(relative), data)

    def list_files(self, relative_dir: str, pattern: str = "*") -> Iterator[str]:
        directory = self._path(relative_dir)
        if not directory.is_dir():
            return
        for path in sorted(directory.glob(pattern)):
            if path.is_file():
                yield path.relative_to(self._case_dir).as_posix()

    def remove(self, relative: str) -> None:
        self._path(relative).unlink(missing_ok=True)
        logger.debug("Removed %s", relative)
