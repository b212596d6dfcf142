"""mergelog CLI: merge a directory of changelog fragments."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, TypedDict, Unpack

import click

from mergelog import __version__
from mergelog.config import (
    ConfigError,
    MergelogConfig,
    find_config,
    load_config,
    parse_date,
    validate_config,
)
from mergelog.disambiguator import (
    Disambiguator,
    InputAbort,
    InteractiveDisambiguator,
    SkipDisambiguator,
)
from mergelog.hosts import HostError, create_host_client
from mergelog.models.repo import HostKind
from mergelog.orchestrator import Orchestrator, read_fragments, write_output
from mergelog.reporters.terminal import reporter
from mergelog.resolver import Resolver
from mergelog.utils.git import GitOperationError, get_remote_url, parse_repo_url

if TYPE_CHECKING:
    from mergelog.models.repo import RepoRef

logger = logging.getLogger(__name__)

_EXIT_FAILURE = 1
_EXIT_ABORTED = 130
_HOST_CHOICES = ("gitlab", "gl", "github", "gh")


class MergeOptions(TypedDict):
    """Options for the merge command (Click passes these as keyword args)."""

    changelog_directory: Path
    repo_url: str | None
    host: str | None
    sections: tuple[str, ...]
    config_path: Path | None
    output: Path | None
    since: str | None
    until: str | None
    no_input: bool
    verbose: bool


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str, *, code: int = _EXIT_FAILURE) -> SystemExit:
    reporter.print_error(message)
    return SystemExit(code)


def _load_run_config(opts: MergeOptions) -> MergelogConfig:
    """Load the config file and apply command line overrides.

    Raises:
        ConfigError: If the file is invalid, a CLI section is not one the
            config file recognizes, or the merged settings fail validation.
    """
    config_path = (
        opts["config_path"]
        or find_config(opts["changelog_directory"])
        or find_config(Path.cwd())
    )
    config = load_config(config_path)
    if config_path is not None:
        reporter.print_success(f"Loaded config from {config_path}")

    cli_sections = opts["sections"]
    if cli_sections and config.sections:
        unknown = [section for section in cli_sections if section not in config.sections]
        if unknown:
            raise ConfigError(
                f"Unknown section(s) {', '.join(repr(s) for s in unknown)}; "
                f"the config recognizes: {', '.join(config.sections)}"
            )

    config = config.with_overrides(
        sections=cli_sections,
        repo=opts["repo_url"],
        host=opts["host"],
        since=opts["since"],
        until=opts["until"],
    )
    errors = validate_config(config)
    if errors:
        raise ConfigError("Invalid configuration:\n  " + "\n  ".join(errors))
    if not config.sections:
        raise ConfigError(
            "No changelog sections provided. Pass `-s/--section` one or more times "
            "(e.g. `-s Added -s Fixed`) or set `sections` in mergelog.toml. The order "
            "given is the order sections appear in the changelog."
        )
    return config


def _resolve_repo(config: MergelogConfig) -> RepoRef:
    """Determine the repository from config, CLI or the git remote."""
    url = config.repo or get_remote_url(Path.cwd())
    host = HostKind.parse(config.host) if config.host else None
    return parse_repo_url(url, host)


@click.command()
@click.argument(
    "changelog_directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "--repo",
    "repo_url",
    default=None,
    metavar="URL",
    help="Repository to resolve merge/pull requests at; omit to infer from the git remote.",
)
@click.option(
    "--host",
    type=click.Choice(_HOST_CHOICES, case_sensitive=False),
    default=None,
    help="Repository host; omit to infer from the repository URL.",
)
@click.option(
    "-s",
    "--section",
    "sections",
    multiple=True,
    help="Changelog section, in output order (repeatable; replaces the config's list).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: mergelog.toml in CHANGELOG_DIRECTORY or the working directory).",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the merged changelog here instead of standard output.",
)
@click.option("--since", default=None, metavar="DATE", help="Ignore requests merged before DATE.")
@click.option("--until", default=None, metavar="DATE", help="Ignore requests merged after DATE.")
@click.option(
    "--no-input",
    is_flag=True,
    help="Never prompt; ambiguous entries are left unlinked.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug details to stderr.")
@click.version_option(version=__version__, prog_name="mergelog")
def cli(**opts: Unpack[MergeOptions]) -> None:
    """Merge changelog fragments in CHANGELOG_DIRECTORY into one changelog.

    Each entry is linked to the merge/pull request that introduced it. Entries
    that already reference a request keep it; the rest are matched against
    merged requests on the host, asking you when the match is not clear.
    """
    _configure_logging(verbose=opts["verbose"])

    try:
        config = _load_run_config(opts)
        since = parse_date(config.since)
        until = parse_date(config.until)
        repo = _resolve_repo(config)
    except (ConfigError, GitOperationError, ValueError) as exc:
        raise _fail(str(exc)) from exc
    logger.debug("Resolving entries against %s on %s", repo.path, repo.base_url)

    client = create_host_client(repo.host)
    disambiguator: Disambiguator = (
        SkipDisambiguator()
        if opts["no_input"]
        else InteractiveDisambiguator(repo, console=reporter.console)
    )
    orchestrator = Orchestrator(
        Resolver(client, repo, disambiguator),
        config.format_config,
        repo=repo,
        default_section=config.resolved_default_section,
        since=since,
        until=until,
        status=reporter.create_status,
    )

    output = opts["output"]
    try:
        fragments = read_fragments(
            opts["changelog_directory"], exclude=[output] if output else []
        )
    except OSError as exc:
        raise _fail(f"Failed to read changelog fragments: {exc}") from exc

    try:
        result = orchestrator.run(fragments)
    except HostError as exc:
        raise _fail(f"Failed to obtain merge requests from {repo.path}: {exc}") from exc
    except InputAbort as exc:
        raise _fail(f"Aborted: {exc}. Nothing was written.", code=_EXIT_ABORTED) from exc

    if output is not None:
        try:
            write_output(result.text, output)
        except OSError as exc:
            raise _fail(f"Failed to write {output}: {exc}") from exc
    else:
        click.echo(result.text, nl=False)

    reporter.print_resolution_summary(result.items)
    reporter.print_warnings(result.warnings)
    if output is not None:
        reporter.print_success(f"Wrote {output}")
