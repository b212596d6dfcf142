"""Tests for answer interpretation and the disambiguator implementations."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest
from rich.console import Console

from mergelog.disambiguator import (
    InputAbort,
    InteractiveDisambiguator,
    ScriptedDisambiguator,
    SkipDisambiguator,
    interpret_answer,
)
from mergelog.models import ChangelogEntry, OutcomeKind, RepoRef

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from mergelog.models import MergeRequestCandidate

_ENTRY = ChangelogEntry(section="Fixed", text="Fix [bold]crash[/bold]", source="a.md")


@pytest.fixture()
def ranked(
    gitlab_repo: RepoRef, make_candidate: Callable[..., MergeRequestCandidate]
) -> list[MergeRequestCandidate]:
    return [
        make_candidate(gitlab_repo, 10, "Fix crash on start").with_score(0.7),
        make_candidate(gitlab_repo, 11, "Fix crash on exit").with_score(0.65),
    ]


def _reader(answers: list[str | BaseException]) -> Callable[[str], str]:
    """Return a read_line replacement yielding ``answers`` in order."""
    stream: Iterator[str | BaseException] = iter(answers)

    def _read(prompt: str) -> str:
        value = next(stream)
        if isinstance(value, BaseException):
            raise value
        return value

    return _read


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


# ── interpret_answer ─────────────────────────────────────────────


class TestInterpretAnswer:
    """Tests for interpret_answer."""

    def test_index_selects_candidate(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        outcome = interpret_answer("2", ranked, gitlab_repo)
        assert outcome is not None
        assert outcome.kind is OutcomeKind.USER_RESOLVED
        assert outcome.link == ranked[1].link

    @pytest.mark.parametrize("answer", ["s", "skip", " SKIP "])
    def test_skip(
        self, answer: str, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        outcome = interpret_answer(answer, ranked, gitlab_repo)
        assert outcome is not None
        assert outcome.kind is OutcomeKind.UNRESOLVED

    @pytest.mark.parametrize("answer", ["q", "quit"])
    def test_quit_aborts(
        self, answer: str, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        with pytest.raises(InputAbort):
            interpret_answer(answer, ranked, gitlab_repo)

    def test_explicit_reference(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        outcome = interpret_answer("!30", ranked, gitlab_repo)
        assert outcome is not None
        assert outcome.link is not None
        assert outcome.link.id == 30
        assert outcome.link.url == gitlab_repo.request_url(30)

    def test_url_reference(self, ranked: list[MergeRequestCandidate]) -> None:
        outcome = interpret_answer("https://github.com/o/r/pull/8", ranked, None)
        assert outcome is not None
        assert outcome.link is not None
        assert outcome.link.id == 8

    @pytest.mark.parametrize("answer", ["0", "3", "", "maybe"])
    def test_meaningless_input(
        self, answer: str, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        assert interpret_answer(answer, ranked, gitlab_repo) is None


# ── Scripted and skip ────────────────────────────────────────────


class TestScriptedDisambiguator:
    """Tests for ScriptedDisambiguator and SkipDisambiguator."""

    def test_replays_answers_in_order(self, ranked: list[MergeRequestCandidate]) -> None:
        disambiguator = ScriptedDisambiguator(["1", "s"])
        assert disambiguator.choose(_ENTRY, ranked).link == ranked[0].link
        assert disambiguator.choose(_ENTRY, ranked).kind is OutcomeKind.UNRESOLVED
        assert len(disambiguator.calls) == 2

    def test_invalid_answers_are_skipped(self, ranked: list[MergeRequestCandidate]) -> None:
        disambiguator = ScriptedDisambiguator(["7", "2"])
        assert disambiguator.choose(_ENTRY, ranked).link == ranked[1].link

    def test_runs_out_as_skip(self, ranked: list[MergeRequestCandidate]) -> None:
        outcome = ScriptedDisambiguator([]).choose(_ENTRY, ranked)
        assert outcome.kind is OutcomeKind.UNRESOLVED

    def test_skip_disambiguator(self, ranked: list[MergeRequestCandidate]) -> None:
        assert SkipDisambiguator().choose(_ENTRY, ranked).kind is OutcomeKind.UNRESOLVED


# ── Interactive ──────────────────────────────────────────────────


class TestInteractiveDisambiguator:
    """Tests for InteractiveDisambiguator with injected input."""

    def test_shows_candidates_and_accepts_index(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        console, buffer = _console()
        disambiguator = InteractiveDisambiguator(
            gitlab_repo, console=console, read_line=_reader(["1"])
        )

        outcome = disambiguator.choose(_ENTRY, ranked)

        assert outcome.kind is OutcomeKind.USER_RESOLVED
        assert outcome.link == ranked[0].link
        output = buffer.getvalue()
        assert "Fix crash on start" in output
        assert "!10" in output
        assert "0.70" in output
        assert "Fix [bold]crash[/bold]" in output
        assert "Linked to !10" in output

    def test_reprompts_after_invalid_input(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        console, buffer = _console()
        disambiguator = InteractiveDisambiguator(
            gitlab_repo, console=console, read_line=_reader(["nope", "s"])
        )

        outcome = disambiguator.choose(_ENTRY, ranked)

        assert outcome.kind is OutcomeKind.UNRESOLVED
        assert "Not a candidate number or reference: 'nope'" in buffer.getvalue()

    def test_end_of_input_is_unresolved(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        console, _ = _console()
        disambiguator = InteractiveDisambiguator(
            gitlab_repo, console=console, read_line=_reader([EOFError()])
        )
        assert disambiguator.choose(_ENTRY, ranked).kind is OutcomeKind.UNRESOLVED

    def test_interrupt_aborts(
        self, ranked: list[MergeRequestCandidate], gitlab_repo: RepoRef
    ) -> None:
        console, _ = _console()
        disambiguator = InteractiveDisambiguator(
            gitlab_repo, console=console, read_line=_reader([KeyboardInterrupt()])
        )
        with pytest.raises(InputAbort):
            disambiguator.choose(_ENTRY, ranked)
