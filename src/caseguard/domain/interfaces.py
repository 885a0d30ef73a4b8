"""
Domain interfaces (Ports) for the coordination core.

Abstract contracts that adapters satisfy. Application services depend on
these, never on the filesystem adapters directly.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from caseguard.domain.models import (
        CaseState,
        GateResult,
        LeadBook,
        SourceCatalog,
        VerificationResult,
    )

STATE_FILE = "state.json"
LEADS_FILE = "leads.json"
SOURCES_FILE = "sources.json"


class CaseStoreInterface(ABC):
    """
    Port for the shared case directory.

    Every ``save_*`` call must be an atomic replace: a concurrent reader sees
    either the previous or the new file, never a partial one. Structural
    mutation must happen inside ``locked(<file name>)``.
    """

    @property
    @abstractmethod
    def case_dir(self) -> Path:
        """Root directory of the case."""

    @abstractmethod
    def locked(self, resource: str) -> AbstractContextManager[None]:
        """
        Hold the advisory lock for a case file (e.g. 'state.json').

        Raises:
            LockTimeout: If the lock cannot be acquired in time
        """

    @abstractmethod
    def load_state(self) -> "CaseState":
        """Load state.json (CaseFileError when missing or malformed)."""

    @abstractmethod
    def save_state(self, state: "CaseState") -> None:
        """Atomically replace state.json."""

    @abstractmethod
    def load_leads(self) -> "LeadBook":
        """Load leads.json, or an empty book when the file is absent."""

    @abstractmethod
    def save_leads(self, book: "LeadBook") -> None:
        """Atomically replace leads.json."""

    @abstractmethod
    def load_sources(self) -> "SourceCatalog":
        """Load sources.json in either layout, or an empty catalog."""

    @abstractmethod
    def save_sources(self, catalog: "SourceCatalog") -> None:
        """Atomically replace sources.json, preserving its layout."""

    @abstractmethod
    def read_text(self, relative: str) -> str | None:
        """Read a case file as text, None when absent."""

    @abstractmethod
    def write_text(self, relative: str, text: str) -> None:
        """Atomically replace a case text file."""

    @abstractmethod
    def read_json(self, relative: str) -> Any:
        """Read an auxiliary JSON file, None when absent."""

    @abstractmethod
    def write_json(self, relative: str, data: Any) -> None:
        """Atomically replace an auxiliary JSON file."""

    @abstractmethod
    def list_files(self, relative_dir: str, pattern: str = "*") -> Iterator[str]:
        """Yield case-relative paths of files in a directory matching a glob."""

    @abstractmethod
    def remove(self, relative: str) -> None:
        """Delete a case file; missing files are ignored."""


class EvidenceGuardInterface(ABC):
    """
    Port for evidence validation.

    Guards are deterministic: the same metadata always yields the same
    verdict. They never repair what they reject.
    """

    @abstractmethod
    def validate(
        self, metadata: Mapping[str, Any], evidence_dir: Path | None = None
    ) -> "VerificationResult":
        """
        Validate raw evidence metadata.

        Args:
            metadata: Parsed metadata.json
            evidence_dir: Directory holding the captured files, when the
                guard needs to look at them

        Returns:
            VerificationResult with valid=True/False and a reason
        """


class GateInterface(ABC):
    """Port for a gate derived from case artifacts."""

    name: str

    @abstractmethod
    def derive(self, case_dir: Path) -> "GateResult":
        """Recompute the gate from the files under ``case_dir``."""
