"""Ignore pattern matching for build contexts (``.dockerignore`` dialect)."""

import logging
import os
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Tuple

import pathspec
from pathspec.pattern import RegexMatchResult, RegexPattern

from ..core.exceptions import PackError, ValidationError

log = logging.getLogger(__name__)

IGNORE_FILE = ".dockerignore"

_UTF8_BOM = "\ufeff"


def _parse_line(line: str) -> Optional[Tuple[str, bool, bool]]:
    """
    Split an ignore file line into its cleaned pattern and flags.

    Args:
        line: Raw line from the ignore file

    Returns:
        Tuple of (pattern, negated, directory_only), or None for comments and
        blank lines
    """
    # comments are detected before trimming, like the docker reader does
    if line.startswith("#"):
        return None

    pattern = line.strip()
    if not pattern:
        return None

    negated = pattern.startswith("!")
    if negated:
        pattern = pattern[1:].strip()
        if not pattern:
            raise ValidationError("Illegal exclusion pattern: '!'")

    directory_only = pattern.endswith("/") and pattern.strip("/") != ""

    pattern = posixpath.normpath(pattern.replace(os.sep, "/"))
    if pattern.startswith("/"):
        pattern = pattern.lstrip("/") or "/"

    return pattern, negated, directory_only


def _translate(pattern: str) -> str:
    """
    Translate a cleaned dockerignore glob into an anchored regular expression.

    Args:
        pattern: Cleaned pattern (no negation prefix, no trailing slash)

    Returns:
        Regular expression source matching the whole path
    """
    out = ["^"]
    i, n = 0, len(pattern)

    while i < n:
        ch = pattern[i]
        i += 1

        if ch == "*":
            if i < n and pattern[i] == "*":
                i += 1
                # "**/" behaves like "**"
                if i < n and pattern[i] == "/":
                    i += 1
                out.append(".*" if i >= n else "(.*/)?")
            else:
                out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "\\":
            if i < n:
                out.append(re.escape(pattern[i]))
                i += 1
            else:
                out.append(re.escape(ch))
        elif ch == "[":
            end = pattern.find("]", i + 1 if pattern[i : i + 1] == "]" else i)
            if end == -1:
                out.append(re.escape(ch))
            else:
                out.append("[" + pattern[i:end] + "]")
                i = end + 1
        else:
            out.append(re.escape(ch))

    out.append("$")
    return "".join(out)


class DockerIgnorePattern(RegexPattern):
    """
    A single ``.dockerignore`` rule.

    A rule matches a path when it matches the path itself or any of its
    parent directories. Directory-only rules (trailing ``/``) never match a
    plain file, only a directory or what lies below it. Directory paths are
    passed with a trailing ``/``.
    """

    __slots__ = ("directory_only", "exact")

    def __init__(self, pattern, include=None):
        super().__init__(pattern, include)
        parsed = _parse_line(pattern) if isinstance(pattern, str) else None
        self.directory_only = bool(parsed and parsed[2])
        self.exact = re.compile(_translate(parsed[0])) if parsed else None

    @classmethod
    def pattern_to_regex(cls, pattern: str):
        parsed = _parse_line(pattern)
        if parsed is None:
            return None, None

        body, negated, _ = parsed
        regex = _translate(body)[:-1] + "(?:/.*)?$"
        return regex, not negated

    def match_file(self, file: str) -> Optional[RegexMatchResult]:
        if self.include is None:
            return None

        is_directory = file.endswith("/")
        path = file.rstrip("/")

        if is_directory or not self.directory_only:
            match = self.exact.match(path)
            if match is not None:
                return RegexMatchResult(match)

        parts = path.split("/")
        for index in range(1, len(parts)):
            match = self.exact.match("/".join(parts[:index]))
            if match is not None:
                return RegexMatchResult(match)

        return None


@dataclass(frozen=True)
class IgnoreFilter:
    """Compiled ignore rules; ``matches`` returns True for excluded paths."""

    patterns: Tuple[str, ...] = ()
    spec: pathspec.PathSpec = field(
        default_factory=lambda: pathspec.PathSpec([]), compare=False, repr=False
    )

    @property
    def is_empty(self) -> bool:
        return not any(p.include is not None for p in self.spec.patterns)

    @property
    def has_exceptions(self) -> bool:
        """Whether any ``!`` rule can re-include paths below excluded directories."""
        return any(p.include is False for p in self.spec.patterns)

    def matches(self, path: str, is_directory: bool = False) -> bool:
        """
        Check if a path should be excluded.

        Args:
            path: Path relative to the context root
            is_directory: Whether the path is a directory

        Returns:
            True if the path is excluded
        """
        norm = posixpath.normpath(str(path).replace(os.sep, "/")).lstrip("/")
        if norm in ("", "."):
            return False
        if is_directory:
            norm += "/"
        return self.spec.match_file(norm)


def compile_patterns(lines: Iterable[str]) -> IgnoreFilter:
    """
    Compile ignore rules into a filter.

    Rules are evaluated in order and the last matching rule wins, so a later
    ``!pattern`` re-includes a path excluded by an earlier rule.

    Args:
        lines: Ignore file lines, in file order

    Returns:
        IgnoreFilter for the given rules
    """
    lines = list(lines)
    if lines and lines[0].startswith(_UTF8_BOM):
        lines[0] = lines[0][len(_UTF8_BOM) :]

    spec = pathspec.PathSpec.from_lines(DockerIgnorePattern, lines)
    patterns = tuple(p.pattern for p in spec.patterns if p.include is not None)
    return IgnoreFilter(patterns=patterns, spec=spec)


def load_ignore_file(context_dir: Path) -> IgnoreFilter:
    """
    Load the ``.dockerignore`` file of a build context.

    Args:
        context_dir: Build context directory

    Returns:
        IgnoreFilter for the file rules, or an empty filter when there is no file

    Raises:
        PackError: If the ignore file exists but cannot be read
    """
    ignore_file = Path(context_dir) / IGNORE_FILE
    if not ignore_file.exists():
        return IgnoreFilter()

    try:
        content = ignore_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PackError(
            f"Unable to read {IGNORE_FILE} file: {e}", path=str(ignore_file)
        ) from e

    result = compile_patterns(content.splitlines())
    log.debug(f"Loaded {len(result.patterns)} patterns from {ignore_file}")
    return result
