"""Reporters for outputting merge progress and results."""

from __future__ import annotations

from mergelog.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
