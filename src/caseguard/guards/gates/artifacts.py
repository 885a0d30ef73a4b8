"""
Gates derived from the presence and shape of written artifacts.
"""

import re
from pathlib import Path

from caseguard.domain.interfaces import GateInterface
from caseguard.domain.models import GateResult
from caseguard.guards.gates.files import non_empty, read_text

CITATION_PATTERN = re.compile(r"\[S\d{3,}\]")
_QUESTION_STATUS = re.compile(r"\*\*Status:\*\*\s*([^\n\r]+)", re.IGNORECASE)
_DONE_STATUSES = ("investigated", "not-applicable")


class PlanningGate(GateInterface):
    """Planning documents exist."""

    name = "planning"
    REQUIRED_FILES = (
        "refined_prompt.md",
        "strategic_context.md",
        "investigation_plan.md",
    )

    def derive(self, case_dir: Path) -> GateResult:
        missing = [f for f in self.REQUIRED_FILES if not (case_dir / f).exists()]
        return GateResult(passed=not missing, details={"missing": missing})


class QuestionsGate(GateInterface):
    """
    Every framework question file is answered.

    An empty or missing questions/ directory fails.
    """

    name = "questions"

    def derive(self, case_dir: Path) -> GateResult:
        questions_dir = case_dir / "questions"
        if not questions_dir.is_dir():
            return GateResult(
                passed=False,
                details={"error": "QUESTIONS_DIR_MISSING", "total": 0, "failures": []},
            )

        files = sorted(p for p in questions_dir.glob("*.md") if p.is_file())
        failures = []
        for path in files:
            match = _QUESTION_STATUS.search(read_text(path) or "")
            status = match.group(1).strip().lower() if match else ""
            if not status:
                failures.append(
                    {"file": path.name, "status": None, "reason": 'Missing "**Status:**" line'}
                )
            elif status not in _DONE_STATUSES:
                failures.append(
                    {
                        "file": path.name,
                        "status": status,
                        "reason": "Status is not investigated/not-applicable",
                    }
                )

        details: dict = {"total": len(files), "failures": failures}
        if not files:
            details["error"] = "NO_QUESTION_FILES"
        return GateResult(passed=bool(files) and not failures, details=details)


class ArticleGate(GateInterface):
    """Full article written, cited and rendered."""

    name = "article"

    def derive(self, case_dir: Path) -> GateResult:
        article_path = case_dir / "articles" / "full.md"
        pdf_path = case_dir / "articles" / "full.pdf"

        article_ok = non_empty(article_path)
        pdf_ok = non_empty(pdf_path)
        text = (read_text(article_path) or "") if article_ok else ""
        has_citations = bool(CITATION_PATTERN.search(text))

        return GateResult(
            passed=article_ok and pdf_ok and has_citations,
            details={
                "article": article_ok,
                "pdf": pdf_ok,
                "has_citations": has_citations,
            },
        )
