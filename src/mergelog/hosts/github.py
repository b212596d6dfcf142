"""GitHub pull request listing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mergelog.hosts.base import EntryHint, HostClient, HostError, in_window, parse_timestamp
from mergelog.models.entry import MergeRequestCandidate, RequestLink
from mergelog.models.repo import HostKind

if TYPE_CHECKING:
    from mergelog.models.repo import RepoRef

GITHUB_API_BASE = "https://api.github.com"
_PER_PAGE = 100


class GitHubClient(HostClient):
    """Queries ``/repos/{owner}/{repo}/pulls`` and keeps merged pulls only."""

    token_env = "GITHUB_TOKEN"

    def __init__(self, token: str | None = None, *, max_pages: int = 20) -> None:
        super().__init__(token)
        self.max_pages = max_pages

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def api_base(repo: RepoRef) -> str:
        if repo.base_url == "https://github.com":
            return GITHUB_API_BASE
        # GitHub Enterprise Server
        return f"{repo.base_url}/api/v3"

    def _fetch(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        url: str | None = f"{self.api_base(repo)}/repos/{repo.owner}/{repo.name}/pulls"
        params: dict[str, Any] | None = {
            "state": "closed",
            "sort": "updated",
            "direction": "desc",
            "per_page": _PER_PAGE,
        }

        candidates: list[MergeRequestCandidate] = []
        pages = 0
        while url is not None and pages < self.max_pages:
            response = self._get(url, params)
            pages += 1
            reached_window_start = False
            for item in self._json_list(response):
                updated_at = parse_timestamp(item.get("updated_at"))
                if hint.since is not None and updated_at is not None and updated_at < hint.since:
                    # Sorted by update time, so everything after this is older
                    reached_window_start = True
                    break
                candidate = self._to_candidate(repo, item)
                if candidate is not None and in_window(candidate.merged_at, hint.since, hint.until):
                    candidates.append(candidate)
            if reached_window_start:
                return candidates
            # The next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None

        if url is not None:
            self.notice(
                f"Stopped after {pages} pages of pull requests for {repo.path}; "
                "older requests were not considered"
            )
        return candidates

    @staticmethod
    def _to_candidate(repo: RepoRef, item: dict[str, Any]) -> MergeRequestCandidate | None:
        number = item.get("number")
        title = item.get("title")
        if not isinstance(number, int) or not isinstance(title, str):
            raise HostError(f"Pull request is missing 'number' or 'title': {item!r}")
        merged_at = parse_timestamp(item.get("merged_at"))
        if merged_at is None:
            # Closed without merging
            return None
        html_url = item.get("html_url")
        url = html_url if isinstance(html_url, str) and html_url else repo.request_url(number)
        return MergeRequestCandidate(
            link=RequestLink(id=number, url=url, host=HostKind.GITHUB),
            title=title,
            matched_text=title,
            merged_at=merged_at,
        )
