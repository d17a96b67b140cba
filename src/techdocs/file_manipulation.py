from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from techdocs.config import (
    BINARY_CONTROL_RATIO,
    BINARY_SNIFF_BYTES,
    TEXT_CONTROL_BYTES,
    FileEntry,
    ScanResult,
    ScanWarning,
    SkipReason,
)
from techdocs.exceptions import SourceNotFoundError
from techdocs.ignore_rules import load_directory_patterns
from techdocs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from techdocs.config import ScanBudget
    from techdocs.ignore_rules import ExcludeRuleSet


def validate_directory(path: Path) -> Path:
    """Resolve `path` and check it is an existing directory.

    Args:
        path (Path): the candidate scan root

    Raises:
        SourceNotFoundError: if the path does not exist or is not a directory

    Returns:
        Path: the resolved directory
    """
    try:
        resolved = path.expanduser().resolve()
        is_dir = resolved.is_dir()
    except (OSError, RuntimeError) as e:
        raise SourceNotFoundError(path=path) from e
    if not is_dir:
        raise SourceNotFoundError(path=path)
    return resolved


def looks_binary(raw: bytes) -> bool:
    """Classify raw bytes as binary.

    Only the first `BINARY_SNIFF_BYTES` are inspected. A NUL byte in that window
    means binary; otherwise the file is binary when more than
    `BINARY_CONTROL_RATIO` of the window are control bytes (ASCII < 0x20 other
    than common whitespace and ESC, plus DEL). Bytes >= 0x80 count as text so a
    stray invalid UTF-8 sequence never turns a text file into a binary one.

    Args:
        raw (bytes): the file content (or a prefix of it)

    Returns:
        bool: True if the bytes should be treated as binary
    """
    sample = raw[:BINARY_SNIFF_BYTES]
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    control = sum(1 for b in sample if (b < 0x20 and b not in TEXT_CONTROL_BYTES) or b == 0x7F)  # noqa: PLR2004
    return control / len(sample) > BINARY_CONTROL_RATIO


def decode_lossy(raw: bytes) -> str:
    """Decode bytes as UTF-8, replacing invalid sequences with U+FFFD."""
    return raw.decode("utf-8", errors="replace")


def read_raw(path: Path) -> bytes:
    """Read a file's raw bytes."""
    return path.read_bytes()


class _Walk:
    """State of one depth-first traversal."""

    def __init__(self, root: Path, rules: ExcludeRuleSet, warnings: list[ScanWarning]) -> None:
        self.root = root
        self.rules = rules
        self.warnings = warnings
        self.seen_dirs: set[Path] = {root}
        self.seen_files: set[Path] = set()

    def warn(self, segments: Sequence[str], reason: SkipReason, detail: str = "") -> None:
        rel = "/".join(segments)
        self.warnings.append(ScanWarning(path=rel, reason=reason, detail=detail))
        logger.debug("path_skipped", path=rel, reason=str(reason), detail=detail)

    def children(self, directory: Path, segments: tuple[str, ...]) -> list[os.DirEntry[str]]:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda e: e.name)
        except OSError as e:
            self.warn(segments or (".",), SkipReason.UNREADABLE, str(e))
            return []

    def directory_rules(self, rules: ExcludeRuleSet, segments: tuple[str, ...], directory: Path) -> ExcludeRuleSet:
        """Extend `rules` with the ignore files found in a subdirectory."""
        if not rules.ignore_files:
            return rules
        return rules.with_directory(segments, load_directory_patterns(directory, rules.ignore_files))

    def files(self) -> Iterator[tuple[tuple[str, ...], Path]]:
        """Yield (segments, path) for every candidate file, in lexicographic DFS order.

        Each pending entry carries the rules in force for its parent directory, so
        an ignore file only affects the subtree it lives in.
        """
        stack: list[tuple[tuple[str, ...], os.DirEntry[str], ExcludeRuleSet]] = [
            ((e.name,), e, self.rules) for e in reversed(self.children(self.root, ()))
        ]
        while stack:
            segments, entry, rules = stack.pop()
            try:
                is_dir = entry.is_dir()
                is_file = not is_dir and entry.is_file()
            except OSError as e:
                self.warn(segments, SkipReason.UNREADABLE, str(e))
                continue
            if rules.matches(segments, is_directory=is_dir):
                continue

            path = Path(entry.path)
            real = path.resolve()
            if entry.is_symlink() and not real.is_relative_to(self.root):
                self.warn(segments, SkipReason.SYMLINK_ESCAPE, str(real))
                continue

            if is_dir:
                if real in self.seen_dirs:
                    self.warn(segments, SkipReason.SYMLINK_CYCLE, str(real))
                    continue
                self.seen_dirs.add(real)
                inner = self.directory_rules(rules, segments, path)
                stack.extend(((*segments, c.name), c, inner) for c in reversed(self.children(path, segments)))
            elif is_file:
                if real in self.seen_files:
                    self.warn(segments, SkipReason.DUPLICATE, str(real))
                    continue
                self.seen_files.add(real)
                yield segments, path


def scan(root: Path, rules: ExcludeRuleSet, budget: ScanBudget) -> ScanResult:
    """Collect text files under `root` within the size budget.

    The walk is depth-first with each directory's entries in lexicographic name
    order, so the result is independent of filesystem enumeration order.
    Excluded directories are pruned without being entered. Symlinks are followed
    only when their target stays inside the root, and each real file or directory
    is visited at most once.

    The aggregate budget uses a skip-and-continue policy: a file that would push
    the running total over `max_total_size_bytes` is skipped, and later, smaller
    files may still be accepted.

    Args:
        root (Path): the directory to scan
        rules (ExcludeRuleSet): compiled exclude rules
        budget (ScanBudget): per-file and aggregate size limits

    Raises:
        SourceNotFoundError: if `root` does not exist or is not a directory

    Returns:
        ScanResult: accepted entries in lexicographic path order plus the warnings
            recorded for skipped files
    """
    base = validate_directory(root)
    warnings: list[ScanWarning] = []
    walk = _Walk(base, rules, warnings)
    entries: list[FileEntry] = []
    total = 0

    for segments, path in walk.files():
        try:
            size = path.stat().st_size
        except OSError as e:
            walk.warn(segments, SkipReason.UNREADABLE, str(e))
            continue
        if size > budget.max_file_size_bytes:
            walk.warn(segments, SkipReason.TOO_LARGE, f"size={size}")
            continue
        try:
            raw = read_raw(path)
        except OSError as e:
            walk.warn(segments, SkipReason.UNREADABLE, str(e))
            continue
        size = len(raw)
        if size > budget.max_file_size_bytes:
            walk.warn(segments, SkipReason.TOO_LARGE, f"size={size}")
            continue
        if looks_binary(raw):
            walk.warn(segments, SkipReason.BINARY)
            continue
        if total + size > budget.max_total_size_bytes:
            walk.warn(segments, SkipReason.OVER_BUDGET, f"size={size} total={total}")
            continue
        total += size
        entries.append(FileEntry(relative_path=segments, content=decode_lossy(raw), size_bytes=size))

    logger.info(
        "scan_completed",
        root=str(base),
        files=len(entries),
        total_bytes=total,
        skipped=len(warnings),
    )
    return ScanResult(root=base, entries=entries, warnings=warnings)


def collect(root: Path, rules: ExcludeRuleSet, budget: ScanBudget) -> list[FileEntry]:
    """Collect text files under `root`; see `scan` for the full contract."""
    return scan(root, rules, budget).entries


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): the list of file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    rels = sorted({p.strip("/") for p in rel_paths if p.strip("/")})
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault("__files__", set()).add(parts[-1])

    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted(k for k in node if k != "__files__")
        files = sorted(node.get("__files__", set()))
        entries: list[tuple[str, Any]] = [(d + "/", node[d]) for d in dirs]
        entries.extend((f, None) for f in files)
        for idx, (name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            lines.append(prefix + ("└── " if last else "├── ") + name)
            if child is not None:
                walk(child, prefix + ("    " if last else "│   "))

    walk(tree, "")
    return lines
