"""Rich console utilities for the caseguard command line."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from caseguard.application.gates import Evaluation

# Shared console instances
console = Console()
error_console = Console(stderr=True)

_STATUS_STYLE = {"COMPLETE": "green", "CONTINUE": "cyan", "ERROR": "red"}


def print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


def print_gates(evaluation: Evaluation) -> None:
    """Print a PASS/FAIL table of the derived gates."""
    table = Table(title=f"Gates (phase {evaluation.recorded_phase.value})")
    table.add_column("Gate", style="cyan")
    table.add_column("Result", width=6)
    table.add_column("Details", style="dim")

    for name, result in evaluation.details.items():
        verdict = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
        details = ", ".join(f"{k}={v}" for k, v in result.details.items())
        table.add_row(name, verdict, details)

    console.print(table)
    passed = sum(evaluation.gates.values())
    console.print(f"{passed}/{len(evaluation.gates)} gates passing")


def print_next_action(evaluation: Evaluation) -> None:
    """Print the next action as a panel."""
    action = evaluation.action
    content = Text(f"Phase: {action.phase.value}\n", style="bold")
    if action.action:
        content.append(f"Action: {action.action}\n", style="bold cyan")
    content.append(action.reason)
    if action.missing_prerequisites:
        content.append(
            f"\nMissing: {', '.join(action.missing_prerequisites)}", style="yellow"
        )
    if action.lead_counts:
        counts = ", ".join(f"{k}={v}" for k, v in action.lead_counts.items())
        content.append(f"\nLeads: {counts}", style="dim")

    style = _STATUS_STYLE.get(action.status.value, "white")
    console.print(Panel(content, title=action.status.value, border_style=style))
