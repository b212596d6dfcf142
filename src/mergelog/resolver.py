"""Resolve changelog entries to the merge/pull request that introduced them.

Candidates come from a host client and are scored by how well their title
covers the entry text. A clear winner is accepted automatically; anything
ambiguous goes to a disambiguator (usually a human), and weak matches are
left unresolved.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mergelog.hosts.base import EntryHint
from mergelog.models.entry import OutcomeKind, ResolutionOutcome

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from mergelog.disambiguator import Disambiguator
    from mergelog.hosts.base import HostClient
    from mergelog.models.entry import ChangelogEntry, MergeRequestCandidate
    from mergelog.models.repo import RepoRef

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_MIN_STEM_LENGTH = 3
_SUFFIXES: tuple[str, ...] = ("ing", "ed", "es", "s")
_STOPWORDS = frozenset(
    {"a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "into", "is",
     "it", "its", "of", "on", "or", "that", "the", "this", "to", "was", "when", "with"}
)

# Weights of the two overlap measures in score_text
_COVERAGE_WEIGHT = 0.7
_DICE_WEIGHT = 0.3

_SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class Thresholds:
    """Decision constants for the resolver."""

    auto_accept: float = 0.75
    """Minimum score for automatic acceptance."""

    margin: float = 0.1
    """Lead the best candidate needs over the runner-up to be accepted automatically."""

    reject: float = 0.3
    """Candidates scoring below this are never proposed."""

    cluster_bonus: float = 0.1
    """Largest bonus for a candidate merged close to already-resolved entries."""

    cluster_window_days: float = 30.0
    """Distance in days at which the clustering bonus reaches zero."""


def _stem(word: str) -> str:
    for suffix in _SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= _MIN_STEM_LENGTH:
            word = word[: -len(suffix)]
            break
    if word.endswith("e") and len(word) - 1 >= _MIN_STEM_LENGTH:
        word = word[:-1]
    return word


def tokenize(text: str) -> frozenset[str]:
    """Lower-case, drop stopwords and reduce words to a rough stem."""
    return frozenset(
        _stem(word) for word in _TOKEN_RE.findall(text.lower()) if word not in _STOPWORDS
    )


def score_text(entry_text: str, title: str) -> float:
    """Similarity of an entry and a request title in [0, 1].

    Mixes the share of entry tokens found in the title with the Dice
    coefficient of both token sets. Neither term can drop when the overlap
    grows, so more shared words never lower the score.
    """
    entry_tokens = tokenize(entry_text)
    title_tokens = tokenize(title)
    if not entry_tokens or not title_tokens:
        return 0.0
    shared = len(entry_tokens & title_tokens)
    coverage = shared / len(entry_tokens)
    dice = 2 * shared / (len(entry_tokens) + len(title_tokens))
    return _COVERAGE_WEIGHT * coverage + _DICE_WEIGHT * dice


class Resolver:
    """Decides which request each changelog entry belongs to.

    The only state shared across entries is the append-only list of merge
    dates of already-resolved entries, used to favour candidates merged
    around the same time.
    """

    def __init__(
        self,
        client: HostClient,
        repo: RepoRef,
        disambiguator: Disambiguator,
        *,
        thresholds: Thresholds | None = None,
        scorer: Callable[[str, str], float] = score_text,
        top_k: int = 5,
    ) -> None:
        self.client = client
        self.repo = repo
        self.disambiguator = disambiguator
        self.thresholds = thresholds or Thresholds()
        self.scorer = scorer
        self.top_k = top_k
        self._resolved_dates: list[datetime] = []

    @property
    def resolved_dates(self) -> tuple[datetime, ...]:
        """Snapshot of merge dates of entries resolved so far."""
        return tuple(self._resolved_dates)

    def _cluster_bonus(self, merged_at: datetime | None) -> float:
        if merged_at is None or not self._resolved_dates:
            return 0.0
        window = self.thresholds.cluster_window_days
        nearest = min(
            abs((merged_at - other).total_seconds()) / _SECONDS_PER_DAY
            for other in self._resolved_dates
        )
        if window <= 0 or nearest >= window:
            return 0.0
        return self.thresholds.cluster_bonus * (1.0 - nearest / window)

    def rank(
        self, entry: ChangelogEntry, candidates: list[MergeRequestCandidate]
    ) -> list[MergeRequestCandidate]:
        """Score ``candidates`` against ``entry`` and sort them best first."""
        scored = [
            candidate.with_score(
                min(
                    1.0,
                    self.scorer(entry.text, candidate.matched_text)
                    + self._cluster_bonus(candidate.merged_at),
                )
            )
            for candidate in candidates
        ]
        # sorted() is stable, so equal scores keep the host's order
        return sorted(scored, key=lambda candidate: candidate.score, reverse=True)

    def decide(
        self, entry: ChangelogEntry, ranked: list[MergeRequestCandidate]
    ) -> ResolutionOutcome:
        """Turn a ranked candidate list into an outcome, prompting if needed."""
        limits = self.thresholds
        if not ranked or ranked[0].score < limits.reject:
            logger.debug("No plausible candidate for %r", entry.text)
            return ResolutionOutcome.unresolved()

        best = ranked[0]
        runner_up = ranked[1].score if len(ranked) > 1 else 0.0
        if best.score >= limits.auto_accept and best.score - runner_up >= limits.margin:
            logger.info("Matched %r to %s (score %.2f)", entry.text, best.link.short, best.score)
            return ResolutionOutcome.auto_resolved(best.link)

        shortlist = [c for c in ranked if c.score >= limits.reject][: self.top_k]
        logger.debug("Asking about %r with %d candidates", entry.text, len(shortlist))
        return self.disambiguator.choose(entry, shortlist)

    def resolve(self, entry: ChangelogEntry, hint: EntryHint | None = None) -> ResolutionOutcome:
        """Resolve one entry.

        Raises:
            HostError: If candidates cannot be fetched from the host.
            InputAbort: If the operator cancels while being asked.
        """
        if entry.link is not None:
            return ResolutionOutcome.already_linked(entry.link)

        candidates = self.client.candidates_near(self.repo, hint or EntryHint(text=entry.text))
        ranked = self.rank(entry, candidates)
        outcome = self.decide(entry, ranked)

        if outcome.kind is not OutcomeKind.UNRESOLVED:
            merged_at = next(
                (c.merged_at for c in candidates if c.link == outcome.link and c.merged_at),
                None,
            )
            if merged_at is not None:
                self._resolved_dates.append(merged_at)
        return outcome
