"""Parse changelog fragments into entries.

A fragment is a small markdown-ish file: ATX headings name sections and
every other non-blank line is one entry, usually a bullet::

    ## Fixed
    - Fixed the race condition in the scheduler (!42)
    - Handle empty config files
      without crashing

Request references already present in an entry (``!42`` on GitLab, ``#42``
on GitHub, or a full merge/pull request URL) become the entry's link.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from mergelog.models.entry import ChangelogEntry, RequestLink
from mergelog.models.repo import HostKind, RepoRef
from mergelog.utils.template import template_pattern, uses_links

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{1,6})(?:[ \t]+(.*))?$")
_BULLET_RE = re.compile(r"^[-*+][ \t]+")
_REFERENCE_DEF_RE = re.compile(r"^\[(\d+)\]:[ \t]*<?(\S+?)>?[ \t]*$")
_COMMENT_RE = re.compile(r"^<!--.*-->$")
_INDEX_TAG_RE = re.compile(r"^\[(\d+)\]$")

_GITLAB_URL_RE = re.compile(r"https?://[^\s/()<>]+/[^\s()<>]+?/-/merge_requests/(\d+)")
_GITHUB_URL_RE = re.compile(r"https?://[^\s/()<>]+/[^\s/()<>]+/[^\s/()<>]+/pull/(\d+)")
_MARKDOWN_LINK_RE = re.compile(r"\[[^\]]*\]\((\S+?)\)")
_SHORT_REF_RE: dict[HostKind, re.Pattern[str]] = {
    HostKind.GITLAB: re.compile(r"(?<![\w&])!(\d+)\b"),
    HostKind.GITHUB: re.compile(r"(?<![\w&])#(\d+)\b"),
}

# Characters that may wrap a trailing reference, e.g. "Fix crash (!12)."
_OPENERS = "([ \t"
_CLOSERS = ")]. \t"


class ParseError(Exception):
    """Raised when a fragment is malformed."""

    def __init__(self, source: str, line: int, message: str) -> None:
        super().__init__(f"{source or '<fragment>'}:{line}: {message}")
        self.source = source
        self.line = line
        self.message = message


@dataclass
class _RawEntry:
    section: str
    text: str
    line: int


def _link_from_url(url: str) -> RequestLink | None:
    gitlab = _GITLAB_URL_RE.fullmatch(url)
    if gitlab:
        return RequestLink(id=int(gitlab.group(1)), url=url, host=HostKind.GITLAB)
    github = _GITHUB_URL_RE.fullmatch(url)
    if github:
        return RequestLink(id=int(github.group(1)), url=url, host=HostKind.GITHUB)
    return None


def _link_from_short(value: str, repo: RepoRef | None) -> RequestLink | None:
    """Parse a host-prefixed short reference such as ``!42``; bare numbers are not links."""
    if repo is None:
        return None
    match = _SHORT_REF_RE[repo.host].fullmatch(value)
    if match is None:
        return None
    request_id = int(match.group(1))
    return RequestLink(id=request_id, url=repo.request_url(request_id), host=repo.host)


def parse_reference(text: str, repo: RepoRef | None) -> RequestLink | None:
    """Parse one explicit request reference: ``!42``, ``#42``, ``42`` or a URL.

    Short forms need ``repo`` to build the URL and must use the repo host's
    prefix. Returns None when ``text`` is not a reference.
    """
    value = text.strip()
    if not value:
        return None
    if value.startswith(("http://", "https://")):
        return _link_from_url(value)
    if repo is None:
        return None
    prefix = repo.host.short_prefix
    if value.startswith(prefix):
        value = value[len(prefix) :]
    if not value.isdigit():
        return None
    request_id = int(value)
    return RequestLink(id=request_id, url=repo.request_url(request_id), host=repo.host)


def find_reference(text: str, repo: RepoRef | None) -> tuple[RequestLink, str] | None:
    """Find the first request reference embedded in ``text``.

    Returns the link and the text with the reference removed when it trails
    the sentence; a reference in the middle of a sentence stays in the text.
    """
    found: tuple[RequestLink, int, int] | None = None

    for match in _MARKDOWN_LINK_RE.finditer(text):
        link = _link_from_url(match.group(1))
        if link is not None:
            found = (link, match.start(), match.end())
            break

    if found is None:
        for pattern in (_GITLAB_URL_RE, _GITHUB_URL_RE):
            match = pattern.search(text)
            if match and (found is None or match.start() < found[1]):
                link = _link_from_url(match.group(0))
                if link is not None:
                    found = (link, match.start(), match.end())

    if found is None and repo is not None:
        match = _SHORT_REF_RE[repo.host].search(text)
        if match:
            request_id = int(match.group(1))
            link = RequestLink(id=request_id, url=repo.request_url(request_id), host=repo.host)
            found = (link, match.start(), match.end())

    if found is None:
        return None

    link, start, end = found
    if text[end:].strip(_CLOSERS):
        return link, text
    head = text[:start].rstrip(_OPENERS)
    if not head:
        return link, text
    return link, head


def _collect_index_links(lines: list[str]) -> dict[int, RequestLink]:
    """Map ``[N]: url`` reference definitions to links."""
    links: dict[int, RequestLink] = {}
    for line in lines:
        match = _REFERENCE_DEF_RE.match(line.strip())
        if match:
            link = _link_from_url(match.group(2))
            if link is not None:
                links[int(match.group(1))] = link
    return links


def _link_from_template_groups(
    groups: dict[str, str | None],
    repo: RepoRef | None,
    index_links: dict[int, RequestLink],
) -> tuple[bool, RequestLink | None]:
    """Resolve the link captured by a template match.

    Returns ``(matched, link)``; ``matched`` is False when the captured values
    are not references at all, so the line should be treated as free text.
    """
    full = (groups.get("link") or "").strip()
    short = (groups.get("link_short") or "").strip()
    if not full and not short:
        return True, None
    if full:
        link = _link_from_url(full)
        return link is not None, link
    index = _INDEX_TAG_RE.match(short)
    if index:
        link = index_links.get(int(index.group(1)))
        return link is not None, link
    link = _link_from_short(short, repo)
    return link is not None, link


def _split_entries(text: str, source: str, default_section: str) -> list[_RawEntry]:
    raw: list[_RawEntry] = []
    section = default_section
    previous_was_entry = False

    for number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or _COMMENT_RE.match(stripped):
            previous_was_entry = False
            continue
        if _REFERENCE_DEF_RE.match(stripped):
            previous_was_entry = False
            continue

        heading = _HEADING_RE.match(stripped)
        if heading and not line[:1].isspace():
            title = (heading.group(2) or "").strip().rstrip("#").strip()
            if not title:
                raise ParseError(source, number, "heading has no title")
            section = title
            previous_was_entry = False
            continue

        if line[:1].isspace() and previous_was_entry:
            continuation = _BULLET_RE.sub("", stripped)
            raw[-1].text = f"{raw[-1].text} {continuation}"
            continue

        raw.append(_RawEntry(section=section, text=_BULLET_RE.sub("", stripped), line=number))
        previous_was_entry = True

    return raw


def parse_fragment(
    text: str,
    repo: RepoRef | None = None,
    *,
    default_section: str,
    template: str | None = None,
    source: str = "",
    stem_link: RequestLink | None = None,
) -> list[ChangelogEntry]:
    """Split fragment ``text`` into changelog entries.

    Args:
        text: Raw fragment contents.
        repo: Repository used to turn short references into links.
        default_section: Section for entries that appear before any heading.
        template: Entry template; lines rendered from it are inverted so a
            merged changelog can be parsed back into the same entries.
        source: Fragment name used in error messages and kept on entries.
        stem_link: Link applied to entries that carry no reference of their
            own (fragments named after their request, e.g. ``42.md``).

    Raises:
        ParseError: If a heading marker has no title.
    """
    lines = text.splitlines()
    index_links = _collect_index_links(lines)
    pattern = template_pattern(template) if template and uses_links(template) else None

    entries: list[ChangelogEntry] = []
    for raw in _split_entries(text, source, default_section):
        body = raw.text
        link: RequestLink | None = None
        matched = False

        if pattern is not None:
            match = pattern.match(body)
            if match:
                matched, link = _link_from_template_groups(match.groupdict(), repo, index_links)
                if matched:
                    body = match.group("item").strip()

        if not matched:
            found = find_reference(body, repo)
            if found is not None:
                link, body = found
            elif stem_link is not None:
                link = stem_link

        if not body:
            logger.debug("Dropping empty entry at %s:%d", source, raw.line)
            continue
        entries.append(ChangelogEntry(section=raw.section, text=body, link=link, source=source))

    return entries
