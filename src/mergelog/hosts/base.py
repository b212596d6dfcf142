"""Host client capability shared by GitLab and GitHub."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import requests

from mergelog.models.entry import MergeRequestCandidate, RequestLink

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mergelog.models.repo import RepoRef

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_TOO_MANY_REQUESTS = 429

_CacheKey = tuple[str, datetime | None, datetime | None]


class HostError(Exception):
    """Raised when the host API cannot be queried (network, auth, rate limit).

    ``fatal`` is set when retrying other entries is pointless, e.g. when the
    host rejected the credentials.
    """

    def __init__(self, message: str, *, status: int | None = None, fatal: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.fatal = fatal


@dataclass(frozen=True)
class EntryHint:
    """What the resolver knows about an entry when asking for candidates."""

    text: str
    """Entry text."""

    since: datetime | None = None
    """Only consider requests merged at or after this time."""

    until: datetime | None = None
    """Only consider requests merged at or before this time."""


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp from an API payload, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None


def in_window(moment: datetime | None, since: datetime | None, until: datetime | None) -> bool:
    """Whether ``moment`` falls inside the optional ``[since, until]`` window."""
    if moment is None:
        return since is None and until is None
    if since is not None and moment < since:
        return False
    return until is None or moment <= until


class HostClient(ABC):
    """Lists merge/pull requests near an entry on one kind of host.

    Implementations memoise listings per query window for the lifetime of the
    client; nothing is persisted between runs.
    """

    token_env: str = ""
    """Environment variable the access token is read from."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token if token is not None else os.environ.get(self.token_env, "")
        self._cache: dict[_CacheKey, list[MergeRequestCandidate]] = {}
        self.request_count = 0
        """Number of HTTP requests issued so far."""
        self._notices: list[str] = []

    @abstractmethod
    def _fetch(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        """Query the host for merged requests inside the hint's window."""

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        """Authentication and content negotiation headers."""

    def candidates_near(self, repo: RepoRef, hint: EntryHint) -> list[MergeRequestCandidate]:
        """Return unscored candidates for an entry.

        Raises:
            HostError: If the host cannot be queried. An empty list always means
                the host really reported no merged requests.
        """
        key = (repo.path, hint.since, hint.until)
        if key not in self._cache:
            self._cache[key] = self._fetch(repo, hint)
            logger.info("Fetched %d merged requests from %s", len(self._cache[key]), repo.path)
        return list(self._cache[key])

    def notice(self, message: str) -> None:
        """Record a recoverable problem to report after the run."""
        logger.debug("%s", message)
        self._notices.append(message)

    def drain_notices(self) -> list[str]:
        """Return and forget the notices recorded so far."""
        notices, self._notices = self._notices, []
        return notices

    def link_for(self, repo: RepoRef, request_id: int) -> RequestLink:
        """Build a link to request ``request_id`` without querying the host."""
        return RequestLink(id=request_id, url=repo.request_url(request_id), host=repo.host)

    def _get(self, url: str, params: Mapping[str, Any] | None = None) -> requests.Response:
        """Make a GET request and translate failures into ``HostError``."""
        self.request_count += 1
        logger.debug("GET %s %s", url, dict(params or {}))
        try:
            response = requests.get(
                url, params=params, headers=self._headers(), timeout=_REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise HostError(f"GET request failed: {exc}") from exc

        status = response.status_code
        if status in {_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN}:
            raise HostError(
                f"Host rejected credentials ({status}) for {url}. "
                f"Check the {self.token_env} environment variable.",
                status=status,
                fatal=True,
            )
        if status == _HTTP_TOO_MANY_REQUESTS:
            raise HostError(f"Rate limited by host while requesting {url}", status=status)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise HostError(f"GET request failed: {exc}", status=status) from exc
        return response

    @staticmethod
    def _json_list(response: requests.Response) -> list[dict[str, Any]]:
        """Decode a JSON array of objects from ``response``."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise HostError(f"Failed to parse host API response from {response.url}") from exc
        if not isinstance(payload, list):
            raise HostError(
                f"Expected an array of request details from {response.url}, "
                f"got {type(payload).__name__}"
            )
        return [item for item in payload if isinstance(item, dict)]
