"""Host clients that list merge/pull requests."""

from __future__ import annotations

from mergelog.hosts.base import EntryHint, HostClient, HostError
from mergelog.hosts.github import GitHubClient
from mergelog.hosts.gitlab import GitLabClient
from mergelog.models.repo import HostKind

_CLIENTS: dict[HostKind, type[HostClient]] = {
    HostKind.GITLAB: GitLabClient,
    HostKind.GITHUB: GitHubClient,
}


def create_host_client(kind: HostKind, *, token: str | None = None) -> HostClient:
    """Instantiate the client implementation for ``kind``."""
    return _CLIENTS[kind](token)


__all__ = [
    "EntryHint",
    "GitHubClient",
    "GitLabClient",
    "HostClient",
    "HostError",
    "create_host_client",
]
