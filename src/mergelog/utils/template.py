"""Entry template handling: substitution, validation and inversion.

Templates use ``{item}``, ``{link}`` and ``{link_short}`` placeholders. The
same template that renders an entry line can be turned into a regular
expression that recovers the entry text and link from a rendered line.
"""

from __future__ import annotations

import re

PLACEHOLDERS: tuple[str, ...] = ("item", "link", "link_short")

_PLACEHOLDER_RE = re.compile(r"\{(\w*)\}")
_KNOWN_PLACEHOLDER_RE = re.compile(r"\{(item|link|link_short)\}")

# Capture patterns used when inverting a template
_GROUP_PATTERNS: dict[str, str] = {
    "item": r".+?",
    "link": r"\S*?",
    "link_short": r"\S*?",
}


def template_errors(template: str) -> list[str]:
    """Return a list of problems with ``template`` (empty if it is usable)."""
    errors: list[str] = []
    for name in _PLACEHOLDER_RE.findall(template):
        if name not in PLACEHOLDERS:
            errors.append(
                f"unknown placeholder '{{{name}}}' (expected one of: "
                f"{', '.join('{' + p + '}' for p in PLACEHOLDERS)})"
            )
    stripped = _PLACEHOLDER_RE.sub("", template)
    if "{" in stripped or "}" in stripped:
        errors.append("unbalanced '{' or '}' outside a placeholder")
    if "{item}" not in template:
        errors.append("template must contain '{item}'")
    return errors


def substitute(template: str, values: dict[str, str]) -> str:
    """Fill every placeholder in one pass so substituted text is never re-expanded."""
    return _KNOWN_PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), ""), template)


def uses_links(template: str) -> bool:
    """Whether the template renders a link placeholder at all."""
    return "{link}" in template or "{link_short}" in template


def template_pattern(template: str) -> re.Pattern[str]:
    """Compile a regex matching whole lines rendered from ``template``.

    Each placeholder becomes a named group; repeated placeholders become
    backreferences so every occurrence must agree.
    """
    parts: list[str] = []
    seen: set[str] = set()
    position = 0
    for match in _KNOWN_PLACEHOLDER_RE.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        name = match.group(1)
        if name in seen:
            parts.append(f"(?P={name})")
        else:
            parts.append(f"(?P<{name}>{_GROUP_PATTERNS[name]})")
            seen.add(name)
        position = match.end()
    parts.append(re.escape(template[position:]))
    return re.compile("^" + "".join(parts) + "$")
