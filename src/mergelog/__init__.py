"""mergelog: merge changelog fragments and link each entry to its merge request."""

__version__ = "0.1.0"
