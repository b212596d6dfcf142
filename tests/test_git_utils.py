"""Tests for git remote inference and repository URL parsing."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest import mock

import pytest

from mergelog.config import ConfigError
from mergelog.models import HostKind, RepoRef
from mergelog.utils.git import GitOperationError, get_remote_url, infer_host, parse_repo_url


class TestParseRepoUrl:
    """Tests for parse_repo_url."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            (
                "https://gitlab.com/acme/widgets",
                RepoRef(HostKind.GITLAB, "acme", "widgets", "https://gitlab.com"),
            ),
            (
                "https://gitlab.com/acme/widgets.git",
                RepoRef(HostKind.GITLAB, "acme", "widgets", "https://gitlab.com"),
            ),
            (
                "git@gitlab.com:group/sub/proj.git",
                RepoRef(HostKind.GITLAB, "group/sub", "proj", "https://gitlab.com"),
            ),
            (
                "https://gitlab.com/group/proj/-/merge_requests/3",
                RepoRef(HostKind.GITLAB, "group", "proj", "https://gitlab.com"),
            ),
            (
                "https://github.com/octocat/hello-world",
                RepoRef(HostKind.GITHUB, "octocat", "hello-world", "https://github.com"),
            ),
            (
                "git@github.com:octocat/hello-world.git",
                RepoRef(HostKind.GITHUB, "octocat", "hello-world", "https://github.com"),
            ),
            (
                "ssh://git@gitlab.example.com/team/app.git",
                RepoRef(HostKind.GITLAB, "team", "app", "https://gitlab.example.com"),
            ),
            (
                "https://gitlab.example.com:8443/team/app",
                RepoRef(HostKind.GITLAB, "team", "app", "https://gitlab.example.com:8443"),
            ),
        ],
    )
    def test_parses(self, url: str, expected: RepoRef) -> None:
        assert parse_repo_url(url) == expected

    def test_github_extra_segments_ignored(self) -> None:
        repo = parse_repo_url("https://github.com/octocat/hello-world/pull/42")
        assert repo.path == "octocat/hello-world"

    def test_explicit_host_for_unknown_domain(self) -> None:
        repo = parse_repo_url("https://code.example.org/team/app", HostKind.GITLAB)
        assert repo.host is HostKind.GITLAB
        assert repo.request_url(1) == "https://code.example.org/team/app/-/merge_requests/1"

    def test_unknown_domain_without_host(self) -> None:
        with pytest.raises(ConfigError, match="Unknown host domain 'code.example.org'"):
            parse_repo_url("https://code.example.org/team/app")

    @pytest.mark.parametrize("url", ["https://gitlab.com/acme", "https://gitlab.com/", "nonsense"])
    def test_not_a_repository(self, url: str) -> None:
        with pytest.raises(ConfigError):
            parse_repo_url(url)


class TestInferHost:
    """Tests for infer_host."""

    def test_github(self) -> None:
        assert infer_host("https://github.com/a/b") is HostKind.GITHUB

    def test_self_hosted_gitlab(self) -> None:
        assert infer_host("git@gitlab.internal.corp:a/b.git") is HostKind.GITLAB


class TestGetRemoteUrl:
    """Tests for get_remote_url."""

    @mock.patch("mergelog.utils.git.subprocess.run")
    def test_returns_stripped_url(self, mock_run: mock.Mock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="git@gitlab.com:acme/widgets.git\n", stderr=""
        )
        assert get_remote_url("/repo") == "git@gitlab.com:acme/widgets.git"
        args = mock_run.call_args.args[0]
        assert args[1:] == ["config", "--get", "remote.origin.url"]
        assert mock_run.call_args.kwargs["cwd"] == Path("/repo")

    @mock.patch("mergelog.utils.git.subprocess.run")
    def test_missing_remote(self, mock_run: mock.Mock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(1, ["git"])
        with pytest.raises(GitOperationError, match="pass --repo"):
            get_remote_url()

    @mock.patch("mergelog.utils.git.subprocess.run")
    def test_empty_url(self, mock_run: mock.Mock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="\n", stderr=""
        )
        with pytest.raises(GitOperationError, match="empty URL"):
            get_remote_url()

    def test_real_repository(self, tmp_path: Path) -> None:
        try:
            subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)
            subprocess.run(
                ["git", "remote", "add", "origin", "https://github.com/octocat/hello-world.git"],
                cwd=tmp_path,
                check=True,
            )
        except (FileNotFoundError, subprocess.CalledProcessError):
            pytest.skip("git is not available")
        assert get_remote_url(tmp_path) == "https://github.com/octocat/hello-world.git"
