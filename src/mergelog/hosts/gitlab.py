"""GitLab merge request listing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from mergelog.hosts.base import EntryHint, HostClient, HostError, in_window, parse_timestamp
from mergelog.models.entry import MergeRequestCandidate, RequestLink
from mergelog.models.repo import HostKind

if TYPE_CHECKING:
    from mergelog.models.repo import RepoRef

_PER_PAGE = 100


class GitLabClient(HostClient):
    """Queries ``/projects/:id/merge_requests`` on gitlab.com or a self-hosted instance."""

    token_env = "GITLAB_TOKEN"

    def __init__(self, token: str | None = None, *, max_pages: int = 20) -> None:
        super().__init__(token)
        self.max_pages = max_pages

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["PRIVATE-TOKEN"] = self._token
        return headers

    @staticmethod
    def api_base(repo: RepoRef) -> str:
        return f"{repo.base_url}/api/v4"

    def _fetch(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        url = f"{self.api_base(repo)}/projects/{quote(repo.path, safe='')}/merge_requests"
        params: dict[str, Any] = {
            "state": "merged",
            "per_page": _PER_PAGE,
            "order_by": "updated_at",
        }
        # updated_at >= merged_at, so updated_after is a safe lower bound
        if hint.since is not None:
            params["updated_after"] = hint.since.isoformat()

        candidates: list[MergeRequestCandidate] = []
        page = "1"
        for _ in range(self.max_pages):
            response = self._get(url, {**params, "page": page})
            for item in self._json_list(response):
                candidate = self._to_candidate(repo, item)
                if in_window(candidate.merged_at, hint.since, hint.until):
                    candidates.append(candidate)
            page = response.headers.get("X-Next-Page", "").strip()
            if not page:
                break
        else:
            self.notice(
                f"Stopped after {self.max_pages} pages of merge requests for {repo.path}; "
                "older requests were not considered"
            )
        return candidates

    @staticmethod
    def _to_candidate(repo: RepoRef, item: dict[str, Any]) -> MergeRequestCandidate:
        iid = item.get("iid")
        title = item.get("title")
        if not isinstance(iid, int) or not isinstance(title, str):
            raise HostError(f"Merge request is missing 'iid' or 'title': {item!r}")
        web_url = item.get("web_url")
        url = web_url if isinstance(web_url, str) and web_url else repo.request_url(iid)
        return MergeRequestCandidate(
            link=RequestLink(id=iid, url=url, host=HostKind.GITLAB),
            title=title,
            matched_text=title,
            merged_at=parse_timestamp(item.get("merged_at")),
        )
