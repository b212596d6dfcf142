"""Tests for repository, entry and outcome models."""

from __future__ import annotations

import pytest

from mergelog.models import (
    ChangelogEntry,
    HostKind,
    OutcomeKind,
    RepoRef,
    RequestLink,
    ResolutionOutcome,
)


class TestHostKind:
    """Tests for HostKind parsing and prefixes."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("gitlab", HostKind.GITLAB),
            ("GL", HostKind.GITLAB),
            (" github ", HostKind.GITHUB),
            ("gh", HostKind.GITHUB),
        ],
    )
    def test_parse_names_and_aliases(self, value: str, expected: HostKind) -> None:
        assert HostKind.parse(value) is expected

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown repository host 'bitbucket'"):
            HostKind.parse("bitbucket")

    def test_short_prefix(self) -> None:
        assert HostKind.GITLAB.short_prefix == "!"
        assert HostKind.GITHUB.short_prefix == "#"


class TestRepoRef:
    """Tests for RepoRef URL building."""

    def test_gitlab_request_url(self) -> None:
        repo = RepoRef(host=HostKind.GITLAB, owner="group/sub", name="proj")
        assert repo.path == "group/sub/proj"
        assert repo.request_url(7) == "https://gitlab.com/group/sub/proj/-/merge_requests/7"

    def test_github_request_url(self) -> None:
        repo = RepoRef(host=HostKind.GITHUB, owner="octocat", name="hello-world")
        assert repo.request_url(42) == "https://github.com/octocat/hello-world/pull/42"

    def test_self_hosted_base(self) -> None:
        repo = RepoRef(
            host=HostKind.GITLAB, owner="team", name="app", web_base="https://git.example.com/"
        )
        assert repo.base_url == "https://git.example.com"
        assert repo.request_url(3) == "https://git.example.com/team/app/-/merge_requests/3"


class TestRequestLink:
    """Tests for RequestLink identity and short form."""

    def test_equality_ignores_url_form(self) -> None:
        a = RequestLink(id=42, url="https://gitlab.com/a/b/-/merge_requests/42")
        b = RequestLink(id=42, url="https://gitlab.example.com/a/b/-/merge_requests/42")
        assert a == b
        assert hash(a) == hash(b)

    def test_different_hosts_differ(self) -> None:
        a = RequestLink(id=42, url="x", host=HostKind.GITLAB)
        b = RequestLink(id=42, url="x", host=HostKind.GITHUB)
        assert a != b

    def test_short(self) -> None:
        assert RequestLink(id=5, url="", host=HostKind.GITLAB).short == "!5"
        assert RequestLink(id=5, url="", host=HostKind.GITHUB).short == "#5"


class TestChangelogEntry:
    """Tests for ChangelogEntry."""

    def test_source_not_part_of_equality(self) -> None:
        a = ChangelogEntry(section="Fixed", text="Crash", source="a.md")
        b = ChangelogEntry(section="Fixed", text="Crash", source="b.md")
        assert a == b

    def test_with_link_returns_copy(self) -> None:
        entry = ChangelogEntry(section="Added", text="Export")
        link = RequestLink(id=1, url="u")
        linked = entry.with_link(link)
        assert linked.link == link
        assert entry.link is None


class TestResolutionOutcome:
    """Tests for ResolutionOutcome consistency."""

    def test_constructors(self) -> None:
        link = RequestLink(id=9, url="u")
        assert ResolutionOutcome.already_linked(link).kind is OutcomeKind.ALREADY_LINKED
        assert ResolutionOutcome.auto_resolved(link).kind is OutcomeKind.AUTO_RESOLVED
        assert ResolutionOutcome.user_resolved(link).kind is OutcomeKind.USER_RESOLVED
        unresolved = ResolutionOutcome.unresolved()
        assert unresolved.kind is OutcomeKind.UNRESOLVED
        assert unresolved.link is None
        assert not unresolved.is_resolved

    def test_unresolved_with_link_rejected(self) -> None:
        with pytest.raises(ValueError, match="inconsistent link"):
            ResolutionOutcome(OutcomeKind.UNRESOLVED, RequestLink(id=1, url="u"))

    def test_resolved_without_link_rejected(self) -> None:
        with pytest.raises(ValueError, match="inconsistent link"):
            ResolutionOutcome(OutcomeKind.AUTO_RESOLVED)
