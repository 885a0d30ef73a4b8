"""
Review gates read the verdict a reviewer wrote as a bold status line.
"""

from pathlib import Path

from caseguard.domain.interfaces import GateInterface
from caseguard.domain.models import GateResult
from caseguard.guards.gates.files import last_bold_status, read_text

REVIEW_STATUSES = ("READY", "READY WITH CHANGES", "NOT READY")


class ReviewGate(GateInterface):
    """Passes when the last recognised status line is READY."""

    def __init__(self, name: str, file_name: str):
        self.name = name
        self.file_name = file_name

    def derive(self, case_dir: Path) -> GateResult:
        text = read_text(case_dir / self.file_name)
        if text is None:
            return GateResult(passed=False, details={"error": "MISSING", "file": self.file_name})
        status = last_bold_status(text, REVIEW_STATUSES)
        return GateResult(
            passed=status == "READY", details={"status": status, "file": self.file_name}
        )
