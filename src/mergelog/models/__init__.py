"""Data models for mergelog."""

from mergelog.models.entry import (
    ChangelogEntry,
    MergeRequestCandidate,
    OutcomeKind,
    RequestLink,
    ResolutionOutcome,
)
from mergelog.models.repo import HostKind, RepoRef

__all__ = [
    "ChangelogEntry",
    "HostKind",
    "MergeRequestCandidate",
    "OutcomeKind",
    "RepoRef",
    "RequestLink",
    "ResolutionOutcome",
]
