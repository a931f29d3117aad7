"""Ignore predicate built from built-in, pattern-file and caller patterns."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, NamedTuple

import pathspec

from epistle.config import BUILTIN_EXCLUDES, PATTERN_FILES
from epistle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path


class IgnoreRule(NamedTuple):
    """A single gitignore-style pattern; negated rules re-include matches."""

    pattern: str
    negated: bool
    spec: pathspec.PathSpec

    def matches(self, path: str) -> bool:
        return self.spec.match_file(path)


def read_pattern_file(path: Path) -> list[str]:
    """Read the patterns of an ignore file.

    Blank lines and `#` comments are dropped. A file that is missing or cannot be
    read contributes no patterns.

    Args:
        path (Path): the ignore file to read

    Returns:
        list[str]: the patterns, in file order
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("pattern_source_unreadable", path=str(path), error=str(e))
        return []
    out: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        out.append(line)
    return out


def normalise_caller_glob(pattern: str) -> str:
    """Turn native Windows separators of a command-line glob into `/`.

    Pattern-file lines never go through this: a backslash there is a
    gitignore escape.
    """
    if os.sep == "\\":
        return pattern.replace(os.sep, "/")
    return pattern


def make_rule(pattern: str, *, negated: bool = False) -> IgnoreRule | None:
    """Compile one pattern; a leading `!` flips the negation.

    Returns:
        IgnoreRule | None: the compiled rule, or None for an empty pattern.
    """
    body = pattern.strip()
    if body.startswith("!"):
        negated = not negated
        body = body[1:]
    if not body:
        return None
    return IgnoreRule(body, negated, pathspec.GitIgnoreSpec.from_lines([body]))


class IgnoreResolver:
    """Ordered ignore rules evaluated last-match-wins."""

    def __init__(self, rules: Iterable[IgnoreRule]) -> None:
        self.rules: tuple[IgnoreRule, ...] = tuple(rules)

    @classmethod
    def from_sources(
        cls,
        root: Path,
        excludes: Sequence[str] = (),
        includes: Sequence[str] = (),
    ) -> IgnoreResolver:
        """Merge every pattern source for `root` into one resolver.

        Sources are applied in this order, later rules overriding earlier ones:
        built-in exclusions, `.gitignore`, `.llmignore`, caller excludes, and
        finally caller includes, which act as negations.

        Args:
            root (Path): the scan root holding the pattern files
            excludes (Sequence[str]): extra exclude globs
            includes (Sequence[str]): force-include globs

        Returns:
            IgnoreResolver: the merged resolver
        """
        patterns: list[tuple[str, bool]] = [(p, False) for p in BUILTIN_EXCLUDES]
        for name in PATTERN_FILES:
            patterns.extend((p, False) for p in read_pattern_file(root / name))
        patterns.extend((normalise_caller_glob(p), False) for p in excludes)
        patterns.extend((normalise_caller_glob(p), True) for p in includes)

        rules = [make_rule(p, negated=neg) for p, neg in patterns]
        return cls(r for r in rules if r is not None)

    def is_ignored(self, path: str) -> bool:
        """Check whether a root-relative path is excluded.

        The last rule matching the path decides: a plain rule ignores it, a
        negated rule keeps it. A path no rule matches is kept.
        """
        for rule in reversed(self.rules):
            if rule.matches(path):
                return not rule.negated
        return False

    __call__ = is_ignored
