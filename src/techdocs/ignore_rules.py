"""Gitignore-style exclusion rules.

Patterns are compiled in order: built-in defaults, the hidden-file rule,
the repository's own ignore files (nested ones anchored to their directory),
then caller-supplied patterns. The last matching pattern wins and `!pattern`
re-includes, as in git.
"""

from __future__ import annotations

import copy
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

import pathspec

from techdocs.config import DEFAULT_EXCLUDES, HIDDEN_PATTERN, IGNORE_FILE_NAMES
from techdocs.exceptions import InvalidPatternError
from techdocs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_BARE_PATTERNS = frozenset({"!", "/", "!/"})


def normalize_patterns(patterns: Iterable[str]) -> list[str]:
    """Drop blank lines, comments and trailing newlines.

    Args:
        patterns (Iterable[str]): raw pattern lines

    Returns:
        list[str]: the patterns worth compiling, in their original order
    """
    out: list[str] = []
    for raw in patterns:
        pat = (raw or "").rstrip("\r\n")
        if not pat.strip() or pat.startswith("#"):
            continue
        out.append(pat)
    return out


def pattern_error(pattern: str) -> str | None:
    """Return why `pattern` cannot be compiled, or None when it is valid."""
    if pattern.strip() in _BARE_PATTERNS:
        return "pattern matches nothing"
    try:
        pathspec.GitIgnoreSpec.from_lines([pattern])
    except ValueError as e:
        return str(e)
    return None


def validate_patterns(patterns: Iterable[str]) -> list[str]:
    """Normalize patterns and check that every one of them compiles.

    Args:
        patterns (Iterable[str]): raw pattern lines

    Raises:
        InvalidPatternError: listing each malformed pattern with its reason

    Returns:
        list[str]: the normalized patterns
    """
    out = normalize_patterns(patterns)
    errors = {pat: err for pat in out if (err := pattern_error(pat)) is not None}
    if errors:
        raise InvalidPatternError(patterns=errors)
    return out


class ExcludeRuleSet:
    """Compiled, layered collection of gitignore-style exclude patterns.

    Layers are consulted in order and the last one with a matching pattern
    decides: the base patterns (defaults, hidden rule, root ignore files), then
    one layer per nested ignore file from the shallowest directory down, then
    the caller's overrides. Within a layer the last matching pattern wins.
    """

    def __init__(
        self,
        patterns: Sequence[str],
        *,
        overrides: Sequence[str] = (),
        ignore_files: Sequence[str] = (),
    ) -> None:
        self.base: tuple[str, ...] = tuple(patterns)
        self.overrides: tuple[str, ...] = tuple(overrides)
        self.patterns: tuple[str, ...] = (*self.base, *self.overrides)
        self.ignore_files: tuple[str, ...] = tuple(ignore_files)
        self._base = pathspec.GitIgnoreSpec.from_lines(self.base)
        self._overrides = pathspec.GitIgnoreSpec.from_lines(self.overrides)
        self._nested: tuple[tuple[tuple[str, ...], pathspec.GitIgnoreSpec], ...] = ()

    def __repr__(self) -> str:
        return f"ExcludeRuleSet(patterns={len(self.patterns)}, nested={len(self._nested)})"

    def with_directory(self, segments: Sequence[str], patterns: Sequence[str]) -> ExcludeRuleSet:
        """Return a copy with `patterns` anchored to the directory at `segments`.

        Args:
            segments (Sequence[str]): the directory, relative to the scan root
            patterns (Sequence[str]): valid patterns read from that directory's ignore files

        Returns:
            ExcludeRuleSet: the extended rule set; `self` is left unchanged
        """
        if not patterns:
            return self
        layered = copy.copy(self)
        layered._nested = (*self._nested, (tuple(segments), pathspec.GitIgnoreSpec.from_lines(patterns)))  # noqa: SLF001
        return layered

    def matches(self, path: str | PurePath | Sequence[str], is_directory: bool = False) -> bool:  # noqa: FBT001, FBT002
        """Check whether a path relative to the scan root is excluded.

        Args:
            path (str | PurePath | Sequence[str]): POSIX relative path, path object,
                or sequence of path segments
            is_directory (bool): test the path as a directory, so that
                directory-only patterns (trailing `/`) apply

        Returns:
            bool: True if the last decisive pattern excludes the path
        """
        if isinstance(path, PurePath):
            rel = path.as_posix()
        elif isinstance(path, str):
            rel = path.replace("\\", "/")
        else:
            rel = "/".join(path)
        rel = rel.strip("/")
        if not rel or rel == ".":
            return False
        segments = tuple(rel.split("/"))

        excluded = False
        layers = [((), self._base), *self._nested, ((), self._overrides)]
        for prefix, spec in layers:
            if len(segments) <= len(prefix) or segments[: len(prefix)] != prefix:
                continue
            sub = "/".join(segments[len(prefix) :])
            verdict = spec.check_file(sub + "/" if is_directory else sub).include
            if verdict is not None:
                excluded = verdict
        return excluded


def compile_rules(
    patterns: Sequence[str] = (),
    *,
    include_hidden: bool = False,
    repository_patterns: Sequence[str] = (),
    ignore_files: Sequence[str] = (),
) -> ExcludeRuleSet:
    """Compile exclude patterns on top of the built-in defaults.

    Every caller-supplied pattern is validated first; if any is malformed the whole
    compile fails and the error lists each offending pattern.

    Args:
        patterns (Sequence[str]): caller-supplied gitignore-style patterns
        include_hidden (bool): when False, dot-files and dot-directories are excluded
        repository_patterns (Sequence[str]): lines read from the scanned repository's
            root ignore files, evaluated before caller patterns
        ignore_files (Sequence[str]): names of per-directory ignore files the walk
            should honor below the root (none by default)

    Raises:
        InvalidPatternError: if one or more patterns are malformed

    Returns:
        ExcludeRuleSet: the compiled rule set
    """
    repo = validate_patterns(repository_patterns)
    user = validate_patterns(patterns)

    ordered: list[str] = list(DEFAULT_EXCLUDES)
    if not include_hidden:
        ordered.append(HIDDEN_PATTERN)
    ordered.extend(repo)
    logger.debug("rules_compiled", defaults=len(DEFAULT_EXCLUDES), repository=len(repo), user=len(user))
    return ExcludeRuleSet(ordered, overrides=user, ignore_files=ignore_files)


compile = compile_rules  # noqa: A001


def read_ignore_file(path: Path) -> list[str]:
    """Read the lines of an ignore file, or an empty list when it is absent or unreadable."""
    try:
        if not path.is_file():
            return []
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        logger.warning("ignore_file_unreadable", path=str(path), error=str(e))
        return []


def usable_patterns(lines: Iterable[str], source: Path) -> list[str]:
    """Keep the lines of a scanned ignore file that compile, warning about the rest."""
    out: list[str] = []
    for pat in normalize_patterns(lines):
        err = pattern_error(pat)
        if err is not None:
            logger.warning("ignore_pattern_skipped", source=str(source), pattern=pat, error=err)
            continue
        out.append(pat)
    return out


def load_directory_patterns(directory: Path, names: Sequence[str] = IGNORE_FILE_NAMES) -> list[str]:
    """Load the ignore files `names` found in `directory`, in that order.

    Args:
        directory (Path): a directory inside the scan root
        names (Sequence[str]): ignore file names; later files take precedence

    Returns:
        list[str]: valid patterns, relative to `directory`
    """
    out: list[str] = []
    for name in names:
        path = directory / name
        out.extend(usable_patterns(read_ignore_file(path), path))
    return out


def load_repository_patterns(root: Path) -> list[str]:
    """Load the root ignore files of a scanned repository.

    `.git/info/exclude` comes first, then `.gitignore` and `.ignore`, so later
    files take precedence as in git and ripgrep. Lines that would not compile
    are dropped with a warning, so a broken ignore file in the scanned tree never
    fails the scan. Ignore files in subdirectories are read by the walk itself.

    Args:
        root (Path): the scan root

    Returns:
        list[str]: valid patterns in precedence order
    """
    exclude = root / ".git" / "info" / "exclude"
    return [*usable_patterns(read_ignore_file(exclude), exclude), *load_directory_patterns(root)]
