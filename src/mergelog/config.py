"""Configuration parsing from ``mergelog.toml`` (or ``.mergelog.yml``)."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from mergelog.models.repo import HostKind
from mergelog.utils.template import template_errors

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = ("mergelog.toml", ".mergelog.yml", ".mergelog.yaml")
DEFAULT_FORMAT = "{item} ({link_short})"
FALLBACK_SECTION = "Other"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_MAX_HEADING_LEVEL = 6


class ConfigError(Exception):
    """Raised when configuration is unreadable or invalid."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class FormatConfig:
    """How resolved entries are rendered. Shared read-only by the formatter."""

    sections: tuple[str, ...] = ()
    """Section names in output order."""

    format: str = DEFAULT_FORMAT
    """Entry template with ``{item}``, ``{link}`` and ``{link_short}`` placeholders."""

    short_links: bool = False
    """Collect links into a trailing ``[N]: url`` reference list."""

    heading_level: int = 2
    """Markdown heading depth of section titles."""


@dataclass
class MergelogConfig:
    """Everything a merge run can be configured with."""

    sections: list[str] = field(default_factory=list)
    """Section names in output order."""

    format: str = DEFAULT_FORMAT
    """Entry template."""

    short_links: bool = False
    """Collect links into a trailing reference list."""

    heading_level: int = 2
    """Markdown heading depth of section titles."""

    default_section: str = ""
    """Section for entries outside any heading (empty = first configured section)."""

    repo: str = ""
    """Repository URL (empty = infer from the git remote)."""

    host: str = ""
    """Repository host name (empty = infer from the repository URL)."""

    since: str = ""
    """ISO date; only requests merged at or after it are candidates."""

    until: str = ""
    """ISO date; only requests merged at or before it are candidates."""

    path: Path | None = None
    """File the configuration was loaded from, if any."""

    @property
    def format_config(self) -> FormatConfig:
        return FormatConfig(
            sections=tuple(self.sections),
            format=self.format,
            short_links=self.short_links,
            heading_level=self.heading_level,
        )

    @property
    def resolved_default_section(self) -> str:
        if self.default_section:
            return self.default_section
        return self.sections[0] if self.sections else FALLBACK_SECTION

    def with_overrides(
        self,
        *,
        sections: list[str] | tuple[str, ...] = (),
        repo: str | None = None,
        host: str | None = None,
        since: str | None = None,
        until: str | None = None,
    ) -> MergelogConfig:
        """Return a copy with CLI values applied.

        Sections given on the command line replace the configured list
        entirely; the two are never merged.
        """
        return replace(
            self,
            sections=list(sections) if sections else list(self.sections),
            repo=repo or self.repo,
            host=host or self.host,
            since=since or self.since,
            until=until or self.until,
        )


def parse_date(value: str) -> datetime | None:
    """Parse an ISO date or datetime; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid date {value!r}; expected ISO format like 2024-05-01") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def find_config(directory: str | Path) -> Path | None:
    """Return the first known config file inside ``directory``."""
    root = Path(directory)
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def _read_raw(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file from {path}: {exc}") from exc

    if path.suffix == ".toml":
        try:
            parsed: Any = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    else:
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigError(f"Config file {path} must contain a table of options")
    return _resolve_dict(parsed)


def _option(raw: dict[str, Any], name: str, default: Any) -> Any:
    """Look up ``name`` accepting both ``short-links`` and ``short_links`` spellings."""
    if name in raw:
        return raw[name]
    return raw.get(name.replace("-", "_"), default)


def load_config(path: str | Path | None) -> MergelogConfig:
    """Load configuration from ``path``; None yields the defaults.

    Raises:
        ConfigError: If the file cannot be read or has the wrong shape.
    """
    if path is None:
        return MergelogConfig()

    config_path = Path(path)
    raw = _read_raw(config_path)

    sections_raw = _option(raw, "sections", [])
    if not isinstance(sections_raw, list):
        raise ConfigError(f"'sections' in {config_path} must be a list of section names")

    try:
        heading_level = int(_option(raw, "heading-level", 2))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'heading-level' in {config_path} must be an integer") from exc

    short_links = _option(raw, "short-links", False)
    if not isinstance(short_links, bool):
        raise ConfigError(f"'short-links' in {config_path} must be true or false")

    return MergelogConfig(
        sections=[str(section) for section in sections_raw],
        format=str(_option(raw, "format", DEFAULT_FORMAT)),
        short_links=short_links,
        heading_level=heading_level,
        default_section=str(_option(raw, "default-section", "")),
        repo=str(_option(raw, "repo", "")),
        host=str(_option(raw, "host", "")),
        since=str(_option(raw, "since", "")),
        until=str(_option(raw, "until", "")),
        path=config_path,
    )


def validate_config(config: MergelogConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = [f"format: {error}" for error in template_errors(config.format)]

    if not 1 <= config.heading_level <= _MAX_HEADING_LEVEL:
        errors.append(
            f"heading-level must be between 1 and {_MAX_HEADING_LEVEL} "
            f"(got: {config.heading_level})"
        )

    duplicates = sorted({s for s in config.sections if config.sections.count(s) > 1})
    if duplicates:
        errors.append(f"sections listed more than once: {', '.join(duplicates)}")

    if config.host:
        try:
            HostKind.parse(config.host)
        except ValueError as exc:
            errors.append(f"host: {exc}")

    for name in ("since", "until"):
        value = getattr(config, name)
        try:
            parse_date(value)
        except ConfigError as exc:
            errors.append(f"{name}: {exc}")

    return errors
