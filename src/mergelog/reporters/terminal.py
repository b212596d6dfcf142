"""Terminal reporter with rich output formatting.

Everything goes to stderr; stdout is reserved for the merged changelog.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mergelog.models.entry import OutcomeKind

if TYPE_CHECKING:
    from rich.status import Status

    from mergelog.models.entry import ChangelogEntry, ResolutionOutcome

console = Console(stderr=True)

_OUTCOME_LABELS: dict[OutcomeKind, tuple[str, str]] = {
    OutcomeKind.ALREADY_LINKED: ("Already linked", "green"),
    OutcomeKind.AUTO_RESOLVED: ("Matched automatically", "green"),
    OutcomeKind.USER_RESOLVED: ("Chosen by you", "cyan"),
    OutcomeKind.UNRESOLVED: ("Left unlinked", "yellow"),
}


class CLIReporter:
    """Rich terminal output reporter for merge runs."""

    def __init__(self, output: Console | None = None) -> None:
        """Initialize the CLI reporter."""
        self.console = output or console

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    def print_warnings(self, warnings: list[str]) -> None:
        """Print collected warnings once, after all prompts are done."""
        if not warnings:
            return
        self.console.print()
        self.console.print(f"[bold yellow]{len(warnings)} warning(s):[/bold yellow]")
        for warning in warnings:
            self.print_warning(warning)

    def print_resolution_summary(
        self, items: list[tuple[ChangelogEntry, ResolutionOutcome]]
    ) -> None:
        """Print how many entries ended up in each resolution state."""
        if not items:
            self.print_info("No changelog entries found.")
            return
        counts = Counter(outcome.kind for _, outcome in items)
        table = Table(title=f"Entries ({len(items)})", title_style="bold cyan")
        table.add_column("Resolution", style="bold")
        table.add_column("Count", justify="right")
        for kind, (label, color) in _OUTCOME_LABELS.items():
            if counts[kind]:
                table.add_row(f"[{color}]{label}[/{color}]", str(counts[kind]))
        self.console.print(table)


reporter = CLIReporter()
