"""Shared fixtures for mergelog tests."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import pytest

from mergelog.hosts.base import HostClient
from mergelog.models.entry import MergeRequestCandidate, RequestLink
from mergelog.models.repo import HostKind, RepoRef

if TYPE_CHECKING:
    from collections.abc import Callable

    from mergelog.hosts.base import EntryHint, HostError


class FakeHostClient(HostClient):
    """In-memory host client that counts how often it is queried."""

    token_env = "MERGELOG_TEST_TOKEN"

    def __init__(
        self,
        candidates: list[MergeRequestCandidate] | None = None,
        errors: list[HostError] | None = None,
    ) -> None:
        super().__init__(token="")
        self.candidates = list(candidates or [])
        self.errors = list(errors or [])
        self.fetches = 0
        self.hints: list[EntryHint] = []

    def _headers(self) -> dict[str, str]:
        return {}

    def candidates_near(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        self.hints.append(hint)
        return super().candidates_near(repo, hint)

    def _fetch(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        self.fetches += 1
        if self.errors:
            raise self.errors.pop(0)
        return list(self.candidates)


@pytest.fixture()
def gitlab_repo() -> RepoRef:
    return RepoRef(host=HostKind.GITLAB, owner="acme", name="widgets")


@pytest.fixture()
def github_repo() -> RepoRef:
    return RepoRef(host=HostKind.GITHUB, owner="octocat", name="hello-world")


@pytest.fixture()
def make_candidate() -> Callable[..., MergeRequestCandidate]:
    """Build a candidate for ``repo`` with the title as matched text."""

    def _make(
        repo: RepoRef,
        request_id: int,
        title: str,
        merged_at: datetime | None = None,
    ) -> MergeRequestCandidate:
        link = RequestLink(id=request_id, url=repo.request_url(request_id), host=repo.host)
        return MergeRequestCandidate(
            link=link, title=title, matched_text=title, merged_at=merged_at
        )

    return _make


@pytest.fixture()
def make_client() -> Callable[..., FakeHostClient]:
    def _make(
        candidates: list[MergeRequestCandidate] | None = None,
        errors: list[HostError] | None = None,
    ) -> FakeHostClient:
        return FakeHostClient(candidates, errors)

    return _make
