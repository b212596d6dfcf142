"""Repository host models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HostKind(Enum):
    """Kind of repository host."""

    GITLAB = "gitlab"
    GITHUB = "github"

    @property
    def short_prefix(self) -> str:
        """Prefix used for compact request references (``!42`` or ``#42``)."""
        return "!" if self is HostKind.GITLAB else "#"

    @classmethod
    def parse(cls, value: str) -> HostKind:
        """Parse a host name or its abbreviation (``gl``/``gh``)."""
        normalized = value.strip().lower()
        aliases = {"gitlab": cls.GITLAB, "gl": cls.GITLAB, "github": cls.GITHUB, "gh": cls.GITHUB}
        if normalized not in aliases:
            raise ValueError(
                f"Unknown repository host '{value}'. Options include 'github'/'gh' for GitHub "
                "and 'gitlab'/'gl' for GitLab."
            )
        return aliases[normalized]


@dataclass(frozen=True)
class RepoRef:
    """A repository on a specific host."""

    host: HostKind
    """Host the repository lives on."""

    owner: str
    """Owner, user or group path (GitLab subgroups keep their ``/``)."""

    name: str
    """Repository name."""

    web_base: str = ""
    """Web root of the host, e.g. ``https://gitlab.com`` (empty = public default)."""

    @property
    def path(self) -> str:
        """``owner/name`` path of the repository."""
        return f"{self.owner}/{self.name}"

    @property
    def base_url(self) -> str:
        if self.web_base:
            return self.web_base.rstrip("/")
        return "https://gitlab.com" if self.host is HostKind.GITLAB else "https://github.com"

    def request_url(self, request_id: int) -> str:
        """Web URL of the merge/pull request with the given id."""
        if self.host is HostKind.GITLAB:
            return f"{self.base_url}/{self.path}/-/merge_requests/{request_id}"
        return f"{self.base_url}/{self.path}/pull/{request_id}"
