"""Changelog entry and resolution models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from mergelog.models.repo import HostKind


@dataclass(frozen=True)
class RequestLink:
    """Reference to a merge/pull request on a host.

    Two links are equal when they point at the same request id on the same
    host kind, whatever URL form they were parsed from.
    """

    id: int
    """Request number (GitLab ``iid`` / GitHub pull number)."""

    url: str = field(compare=False)
    """Full web URL of the request."""

    host: HostKind = HostKind.GITLAB
    """Host kind the id belongs to."""

    @property
    def short(self) -> str:
        """Compact reference form, e.g. ``!42`` on GitLab or ``#42`` on GitHub."""
        return f"{self.host.short_prefix}{self.id}"


@dataclass(frozen=True)
class ChangelogEntry:
    """One logical changelog line."""

    section: str
    """Section heading the entry belongs to (e.g. ``Fixed``)."""

    text: str
    """Entry text without bullet marker or trailing request reference."""

    link: RequestLink | None = None
    """Request the entry is already linked to, if any."""

    source: str = field(default="", compare=False)
    """Fragment file the entry was read from."""

    def with_link(self, link: RequestLink) -> ChangelogEntry:
        """Return a copy of this entry linked to ``link``."""
        return replace(self, link=link)


@dataclass(frozen=True)
class MergeRequestCandidate:
    """A merge/pull request proposed as a match for an entry."""

    link: RequestLink
    title: str
    matched_text: str
    """Text the entry is compared against (the remote title)."""

    score: float = 0.0
    """Similarity score in [0, 1]; 0 until the resolver scores it."""

    merged_at: datetime | None = None
    """When the request was merged, if the host reported it."""

    def with_score(self, score: float) -> MergeRequestCandidate:
        return replace(self, score=score)


class OutcomeKind(Enum):
    """How an entry's link was determined."""

    ALREADY_LINKED = "already_linked"
    AUTO_RESOLVED = "auto_resolved"
    USER_RESOLVED = "user_resolved"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of resolving one entry. Only ``UNRESOLVED`` carries no link."""

    kind: OutcomeKind
    link: RequestLink | None = None

    def __post_init__(self) -> None:
        if (self.kind is OutcomeKind.UNRESOLVED) != (self.link is None):
            raise ValueError(f"{self.kind.value} outcome has an inconsistent link: {self.link!r}")

    @classmethod
    def already_linked(cls, link: RequestLink) -> ResolutionOutcome:
        return cls(OutcomeKind.ALREADY_LINKED, link)

    @classmethod
    def auto_resolved(cls, link: RequestLink) -> ResolutionOutcome:
        return cls(OutcomeKind.AUTO_RESOLVED, link)

    @classmethod
    def user_resolved(cls, link: RequestLink) -> ResolutionOutcome:
        return cls(OutcomeKind.USER_RESOLVED, link)

    @classmethod
    def unresolved(cls) -> ResolutionOutcome:
        return cls(OutcomeKind.UNRESOLVED)

    @property
    def is_resolved(self) -> bool:
        return self.link is not None
