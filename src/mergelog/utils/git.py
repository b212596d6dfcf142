"""Git remote inference and repository URL parsing."""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path
from urllib.parse import urlsplit

from mergelog.config import ConfigError
from mergelog.models.repo import HostKind, RepoRef

logger = logging.getLogger(__name__)

# SSH: git@gitlab.com:group/sub/project.git
_SCP_LIKE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<domain>[\w.-]+):(?P<path>[^/].*)$")

# Expected minimum number of path segments in "owner/repo"
_OWNER_REPO_PARTS = 2


class GitOperationError(Exception):
    """Exception raised when git operations fail."""


def _git_executable() -> str:
    """Resolve the full path to the ``git`` executable."""
    return shutil.which("git") or "git"


def get_remote_url(repo_path: str | Path = ".", remote: str = "origin") -> str:
    """Return the URL of ``remote`` in the working copy at ``repo_path``.

    Raises:
        GitOperationError: If git fails or the remote is not configured.
    """
    try:
        result = subprocess.run(
            [_git_executable(), "config", "--get", f"remote.{remote}.url"],
            cwd=Path(repo_path),
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        msg = (
            f"Failed to determine the {remote} URL of the current repository. "
            "Add one with `git remote add origin <url>` or pass --repo."
        )
        raise GitOperationError(msg) from exc

    url = result.stdout.strip()
    if not url:
        raise GitOperationError(f"Remote {remote!r} has an empty URL; pass --repo instead.")
    return url


def _split_remote(url: str) -> tuple[str, str, str]:
    """Split a remote URL into ``(scheme, domain, path)``."""
    value = url.strip()
    if "://" in value:
        parts = urlsplit(value)
        if not parts.hostname:
            raise ConfigError(f"Provided URL is missing a domain: {url}")
        scheme = "https" if parts.scheme in {"ssh", "git", "git+ssh"} else parts.scheme
        domain = parts.hostname
        if parts.port is not None and scheme == parts.scheme:
            domain = f"{domain}:{parts.port}"
        return scheme, domain, parts.path
    scp = _SCP_LIKE_RE.match(value)
    if scp:
        return "https", scp.group("domain"), scp.group("path")
    raise ConfigError(f"Cannot parse repository URL: {url!r}")


def infer_host(url: str) -> HostKind:
    """Infer the host kind from the domain of a repository URL.

    Raises:
        ConfigError: If the domain is not a known host.
    """
    _, domain, _ = _split_remote(url)
    domain = domain.lower()
    if domain == "github.com" or domain.endswith(".github.com"):
        return HostKind.GITHUB
    if "gitlab" in domain:
        return HostKind.GITLAB
    raise ConfigError(
        f"Unknown host domain {domain!r}. Use a known repository host like github.com or "
        "gitlab.com, or pass --host."
    )


def parse_repo_url(url: str, host: HostKind | None = None) -> RepoRef:
    """Parse a repository URL (HTTPS or SSH) into a ``RepoRef``.

    GitLab repositories may live in nested groups, so everything but the last
    path segment is the owner. GitHub URLs use exactly ``owner/name``.

    Raises:
        ConfigError: If the URL does not point at a repository.
    """
    scheme, domain, path = _split_remote(url)
    kind = host or infer_host(url)

    segments = [segment for segment in path.strip("/").split("/") if segment]
    if "-" in segments:
        # GitLab web URLs like group/project/-/merge_requests
        segments = segments[: segments.index("-")]
    if segments:
        segments[-1] = segments[-1].removesuffix(".git")
    if len(segments) < _OWNER_REPO_PARTS or not all(segments):
        raise ConfigError(
            f"URL does not point to a repository: {url}. "
            f"It should look like {scheme}://{domain}/{{owner}}/{{name}}"
        )

    if kind is HostKind.GITHUB:
        owner, name = segments[0], segments[1]
    else:
        owner, name = "/".join(segments[:-1]), segments[-1]

    repo = RepoRef(host=kind, owner=owner, name=name, web_base=f"{scheme}://{domain}")
    logger.debug("Parsed %s as %s repository %s", url, kind.value, repo.path)
    return repo
