"""Ask an operator which request an ambiguous entry belongs to."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mergelog.models.entry import ResolutionOutcome
from mergelog.parsing.fragments import parse_reference

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from mergelog.models.entry import ChangelogEntry, MergeRequestCandidate
    from mergelog.models.repo import RepoRef

logger = logging.getLogger(__name__)

_SKIP_ANSWERS = frozenset({"s", "skip"})
_QUIT_ANSWERS = frozenset({"q", "quit"})


class InputAbort(Exception):
    """Raised when the operator cancels the run while being asked."""


class Disambiguator(ABC):
    """Chooses between ranked candidates for one entry."""

    @abstractmethod
    def choose(
        self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]
    ) -> ResolutionOutcome:
        """Return exactly one outcome for ``entry``.

        Raises:
            InputAbort: If the run should stop without writing anything.
        """


class SkipDisambiguator(Disambiguator):
    """Leaves every ambiguous entry unresolved (non-interactive runs)."""

    def choose(
        self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]
    ) -> ResolutionOutcome:
        logger.info("Leaving %r unlinked (%d candidates, no input)", entry.text, len(ranked))
        return ResolutionOutcome.unresolved()


def interpret_answer(
    answer: str, ranked: list[MergeRequestCandidate], repo: RepoRef | None
) -> ResolutionOutcome | None:
    """Map one line of operator input to an outcome.

    Accepts a 1-based candidate index, ``s``/``skip``, or an explicit request
    reference (``!30``, ``#30``, a URL). Returns None for input that means
    nothing, so the caller can ask again.

    Raises:
        InputAbort: For ``q``/``quit``.
    """
    value = answer.strip()
    lowered = value.lower()
    if lowered in _QUIT_ANSWERS:
        raise InputAbort("Cancelled by operator")
    if lowered in _SKIP_ANSWERS:
        return ResolutionOutcome.unresolved()
    if value.isdigit():
        index = int(value)
        if 1 <= index <= len(ranked):
            return ResolutionOutcome.user_resolved(ranked[index - 1].link)
        return None
    link = parse_reference(value, repo)
    if link is None:
        return None
    return ResolutionOutcome.user_resolved(link)


class ScriptedDisambiguator(Disambiguator):
    """Replays canned answers, one per call; runs out as ``skip``."""

    def __init__(self, answers: Iterable[str], repo: RepoRef | None = None) -> None:
        self._answers = iter(answers)
        self.repo = repo
        self.calls: list[tuple[ChangelogEntry, list[MergeRequestCandidate]]] = []

    def choose(
        self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]
    ) -> ResolutionOutcome:
        self.calls.append((entry, list(ranked)))
        for answer in self._answers:
            outcome = interpret_answer(answer, ranked, self.repo)
            if outcome is not None:
                return outcome
        return ResolutionOutcome.unresolved()


class InteractiveDisambiguator(Disambiguator):
    """Prompts on the terminal, blocking until the operator answers.

    End of input leaves the entry unresolved so a batch over many fragments
    keeps going; Ctrl-C or ``q`` aborts the whole run.
    """

    def __init__(
        self,
        repo: RepoRef | None,
        *,
        console: Console | None = None,
        read_line: Callable[[str], str] | None = None,
    ) -> None:
        self.repo = repo
        self.console = console or Console(stderr=True)
        self._read_line = read_line or self.console.input

    def _show(self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]) -> None:
        origin = f" [dim]({escape(entry.source)})[/dim]" if entry.source else ""
        self.console.print()
        self.console.print(
            f"[red]Cannot determine the request for this entry[/red] "
            f"in [bold]{escape(entry.section)}[/bold]{origin}:"
        )
        self.console.print(f"  [dim]{escape(entry.text)}[/dim]")

        if ranked:
            table = Table(title="Is it one of", title_style="bold cyan")
            table.add_column("#", justify="right", style="bold")
            table.add_column("Request")
            table.add_column("Title")
            table.add_column("Score", justify="right")
            for index, candidate in enumerate(ranked, start=1):
                table.add_row(
                    str(index),
                    candidate.link.short,
                    escape(candidate.title),
                    f"{candidate.score:.2f}",
                )
            self.console.print(table)

        prefix = self.repo.host.short_prefix if self.repo else "!"
        self.console.print(
            f"[dim]Enter a number, a reference like {prefix}30 or a URL, "
            "'s' to skip, 'q' to quit.[/dim]"
        )

    def choose(
        self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]
    ) -> ResolutionOutcome:
        self._show(entry, ranked)
        while True:
            try:
                answer = self._read_line("> ")
            except EOFError:
                logger.info("End of input; leaving %r unlinked", entry.text)
                return ResolutionOutcome.unresolved()
            except KeyboardInterrupt as exc:
                raise InputAbort("Interrupted by operator") from exc

            outcome = interpret_answer(answer, ranked, self.repo)
            if outcome is not None:
                if outcome.link is not None:
                    self.console.print(f"[green]✓[/green] Linked to {outcome.link.short}")
                return outcome
            self.console.print(
                f"[yellow]⚠[/yellow] Not a candidate number or reference: {escape(repr(answer))}"
            )
