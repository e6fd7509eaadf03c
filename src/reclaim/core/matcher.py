"""Glob matching against paths relative to a rule's base directory."""

from __future__ import annotations

import fnmatch
import logging
import re
from os import PathLike

log = logging.getLogger(__name__)


class PatternError(ValueError):
    """Raised for a glob that is not well formed."""


def normalize_separators(path: str | PathLike[str]) -> str:
    """Return *path* with every backslash turned into a forward slash."""
    return str(path).replace("\\", "/")


def validate_pattern(pattern: str) -> None:
    """Reject malformed globs.

    A ``[`` must open a class closed by a later ``]`` (the first class
    character, after an optional ``!``, may itself be ``]``). A recursive
    ``**`` must form a whole ``/``-separated segment, and runs of three or
    more ``*`` are invalid.
    """
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "*":
            run = i
            while run < len(pattern) and pattern[run] == "*":
                run += 1
            count = run - i
            if count > 2:
                raise PatternError(f"too many wildcards at position {i}")
            if count == 2:
                starts_segment = i == 0 or pattern[i - 1] == "/"
                ends_segment = run == len(pattern) or pattern[run] == "/"
                if not (starts_segment and ends_segment):
                    raise PatternError(f"'**' must be a whole path segment at position {i}")
            i = run
            continue
        if char == "[":
            first = i + 2 if pattern[i + 1:i + 2] == "!" else i + 1
            close = pattern.find("]", first + 1)
            if first >= len(pattern) or close == -1:
                raise PatternError(f"unclosed character class at position {i}")
            i = close + 1
            continue
        i += 1


class Matcher:
    """A compiled glob pattern.

    Patterns use ``fnmatch`` semantics and are case-sensitive; ``*`` also
    matches across ``/`` so ``*.log`` picks up logs in subdirectories.
    """

    def __init__(self, pattern: str, regex: re.Pattern[str]) -> None:
        self.pattern = pattern
        self._regex = regex

    @classmethod
    def compile(cls, pattern: str | None) -> Matcher | None:
        """Compile *pattern*, returning None ("match everything") when absent or invalid."""
        if not pattern:
            return None
        normalized = normalize_separators(pattern)
        try:
            validate_pattern(normalized)
            regex = re.compile(fnmatch.translate(normalized))
        except (PatternError, re.error) as exc:
            log.warning("Ignoring invalid glob pattern %r: %s", pattern, exc)
            return None
        return cls(normalized, regex)

    def matches(self, relative_path: str | PathLike[str]) -> bool:
        return self._regex.match(normalize_separators(relative_path)) is not None

    def __repr__(self) -> str:
        return f"Matcher({self.pattern!r})"
