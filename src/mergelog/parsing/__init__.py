"""Fragment parsing for mergelog."""

from mergelog.parsing.fragments import ParseError, find_reference, parse_fragment, parse_reference

__all__ = ["ParseError", "find_reference", "parse_fragment", "parse_reference"]
