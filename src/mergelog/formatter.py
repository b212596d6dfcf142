"""Render resolved entries into the merged changelog."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mergelog.utils.template import substitute

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mergelog.config import FormatConfig
    from mergelog.models.entry import ChangelogEntry, RequestLink, ResolutionOutcome


def order_sections(sections: Sequence[str], configured: Sequence[str]) -> list[str]:
    """Configured sections first (in configured order), then the rest as first seen."""
    seen = list(dict.fromkeys(sections))
    listed = [section for section in configured if section in seen]
    return listed + [section for section in seen if section not in configured]


def render(
    items: Sequence[tuple[ChangelogEntry, ResolutionOutcome]],
    config: FormatConfig,
) -> str:
    """Render ``(entry, outcome)`` pairs as markdown.

    Entries are grouped under one heading per section and keep their input
    order. With ``short_links`` every distinct link gets an index on first
    appearance, ``{link_short}`` renders as ``[N]`` and the ``[N]: url``
    definitions follow the last section.
    """
    grouped: dict[str, list[tuple[ChangelogEntry, ResolutionOutcome]]] = {}
    for entry, outcome in items:
        grouped.setdefault(entry.section, []).append((entry, outcome))

    inline_index = config.short_links and "{link_short}" in config.format
    indices: dict[RequestLink, int] = {}
    blocks: list[str] = []
    for section in order_sections(list(grouped), config.sections):
        lines = [f"{'#' * config.heading_level} {section}"]
        for entry, outcome in grouped[section]:
            link = outcome.link
            if link is None:
                short = full = ""
            elif inline_index:
                index = indices.setdefault(link, len(indices) + 1)
                short, full = f"[{index}]", link.url
            else:
                short, full = link.short, link.url
            line = substitute(
                config.format, {"item": entry.text, "link": full, "link_short": short}
            )
            lines.append(f"- {line}".rstrip())
        blocks.append("\n".join(lines))

    if indices:
        definitions = sorted(indices.items(), key=lambda pair: pair[1])
        blocks.append("\n".join(f"[{index}]: {link.url}" for link, index in definitions))

    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"
