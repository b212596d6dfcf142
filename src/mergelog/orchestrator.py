"""Run a merge: read fragments, resolve every entry, render the changelog."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mergelog.config import CONFIG_FILENAMES
from mergelog.formatter import render
from mergelog.hosts.base import EntryHint, HostError
from mergelog.models.entry import ChangelogEntry, ResolutionOutcome
from mergelog.parsing.fragments import ParseError, parse_fragment

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from contextlib import AbstractContextManager
    from datetime import datetime

    from mergelog.config import FormatConfig
    from mergelog.models.entry import RequestLink
    from mergelog.models.repo import RepoRef
    from mergelog.resolver import Resolver

logger = logging.getLogger(__name__)

FRAGMENT_SUFFIXES: tuple[str, ...] = (".md", ".txt")


@dataclass(frozen=True)
class Fragment:
    """One changelog fragment file."""

    name: str
    """File name, used in warnings."""

    stem: str
    """File name without suffix; a number here names the fragment's request."""

    text: str


@dataclass
class MergeResult:
    """Outcome of a merge run."""

    text: str
    """Rendered changelog."""

    items: list[tuple[ChangelogEntry, ResolutionOutcome]] = field(default_factory=list)
    """Every entry with its resolution, in render input order."""

    warnings: list[str] = field(default_factory=list)
    """Recoverable problems, reported once after the run."""


def read_fragments(
    directory: str | Path,
    *,
    suffixes: tuple[str, ...] = FRAGMENT_SUFFIXES,
    exclude: Iterable[str | Path] = (),
) -> list[Fragment]:
    """Read every fragment file in ``directory``, sorted by file name.

    Config files and anything in ``exclude`` (e.g. the output file when it
    lives next to the fragments) are skipped.
    """
    root = Path(directory)
    excluded = {Path(path).resolve() for path in exclude}
    fragments: list[Fragment] = []
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix not in suffixes:
            continue
        if path.name in CONFIG_FILENAMES or path.resolve() in excluded:
            continue
        text = path.read_text(encoding="utf-8", errors="replace")
        fragments.append(Fragment(name=path.name, stem=path.stem, text=text))
    logger.debug("Found %d fragments in %s", len(fragments), root)
    return fragments


def write_output(text: str, destination: str | Path) -> None:
    """Write ``text`` to ``destination`` atomically.

    The content goes to a temporary sibling first and replaces the target in
    one step, so an interrupted run never leaves a half-written changelog.
    """
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        Path(tmp_name).replace(target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class Orchestrator:
    """Sequences parsing, resolution and rendering over a set of fragments.

    ``HostError`` on a single entry leaves that entry unresolved with a
    warning. A fatal error (rejected credentials) or ``max_host_failures``
    failures in a row abort the run instead.
    """

    def __init__(
        self,
        resolver: Resolver,
        config: FormatConfig,
        *,
        repo: RepoRef | None,
        default_section: str,
        since: datetime | None = None,
        until: datetime | None = None,
        max_host_failures: int = 3,
        status: Callable[[str], AbstractContextManager[Any]] | None = None,
    ) -> None:
        self.resolver = resolver
        self.config = config
        self.repo = repo
        self.default_section = default_section
        self.since = since
        self.until = until
        self.max_host_failures = max_host_failures
        self._status = status or (lambda message: contextlib.nullcontext())

    def _stem_link(self, stem: str) -> RequestLink | None:
        if self.repo is None or not stem.isdigit():
            return None
        return self.resolver.client.link_for(self.repo, int(stem))

    def parse(self, fragments: Iterable[Fragment]) -> tuple[list[ChangelogEntry], list[str]]:
        """Parse all fragments; malformed ones are skipped with a warning."""
        entries: list[ChangelogEntry] = []
        warnings: list[str] = []
        for fragment in fragments:
            try:
                parsed = parse_fragment(
                    fragment.text,
                    self.repo,
                    default_section=self.default_section,
                    template=self.config.format,
                    source=fragment.name,
                    stem_link=self._stem_link(fragment.stem),
                )
            except ParseError as exc:
                logger.debug("Skipping malformed fragment %s", exc)
                warnings.append(f"Skipped {exc}")
                continue
            if not parsed:
                logger.debug("Fragment %s has no entries", fragment.name)
            entries.extend(parsed)
        return entries, warnings

    def hint_for(self, entry: ChangelogEntry) -> EntryHint:
        return EntryHint(text=entry.text, since=self.since, until=self.until)

    def resolve_all(
        self, entries: Iterable[ChangelogEntry]
    ) -> tuple[list[tuple[ChangelogEntry, ResolutionOutcome]], list[str]]:
        """Resolve entries one at a time.

        Raises:
            HostError: On a fatal or repeated host failure.
            InputAbort: If the operator cancels.
        """
        items: list[tuple[ChangelogEntry, ResolutionOutcome]] = []
        warnings: list[str] = []
        failures_in_row = 0
        for entry in entries:
            try:
                outcome = self.resolver.resolve(entry, self.hint_for(entry))
            except HostError as exc:
                failures_in_row += 1
                if exc.fatal or failures_in_row >= self.max_host_failures:
                    raise
                logger.debug("Host query failed for %r: %s", entry.text, exc)
                warnings.append(f"Left unlinked after host error ({entry.source}): {exc}")
                outcome = ResolutionOutcome.unresolved()
            else:
                failures_in_row = 0
            items.append((entry, outcome))
        warnings.extend(self.resolver.client.drain_notices())
        return items, warnings

    def prefetch(self, entries: list[ChangelogEntry]) -> list[str]:
        """Fetch the candidate listing once before any prompt is shown.

        Skipped when every entry already carries a link. A failed listing is
        retried per entry, so only fatal errors propagate from here.

        Raises:
            HostError: If the host rejected the credentials.
        """
        if self.repo is None or all(entry.link is not None for entry in entries):
            return []
        hint = EntryHint(text="", since=self.since, until=self.until)
        try:
            with self._status(f"Fetching merged requests from {self.repo.path}"):
                self.resolver.client.candidates_near(self.repo, hint)
        except HostError as exc:
            if exc.fatal:
                raise
            logger.debug("Prefetch from %s failed: %s", self.repo.path, exc)
            return [f"Could not list merged requests from {self.repo.path} up front: {exc}"]
        return []

    def run(self, fragments: Iterable[Fragment]) -> MergeResult:
        """Parse, resolve and render ``fragments``; nothing is written here.

        Raises:
            HostError: On a fatal or repeated host failure.
            InputAbort: If the operator cancels.
        """
        entries, warnings = self.parse(fragments)
        warnings.extend(self.prefetch(entries))
        items, resolve_warnings = self.resolve_all(entries)
        return MergeResult(
            text=render(items, self.config),
            items=items,
            warnings=warnings + resolve_warnings,
        )
