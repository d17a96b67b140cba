from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from pydantic import BaseModel

from techdocs.config import IGNORE_FILE_NAMES, ScanResult
from techdocs.file_manipulation import scan, validate_directory
from techdocs.ignore_rules import ExcludeRuleSet, compile_rules, load_repository_patterns
from techdocs.logging import logger
from techdocs.output_construction import format_prompt

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from techdocs.config import ScanBudget
    from techdocs.generation import ReadmeGenerator


class PromptBundle(BaseModel):
    """A scan result together with its rendered prompt document."""

    result: ScanResult
    document: str


def build_rules(
    root: Path,
    patterns: Sequence[str],
    *,
    include_hidden: bool = False,
    use_gitignore: bool = True,
) -> ExcludeRuleSet:
    """Compile the exclude rules for one scan of `root`.

    Args:
        root (Path): the scan root, used to find the repository's ignore files
        patterns (Sequence[str]): caller-supplied exclude patterns
        include_hidden (bool): keep dot-files and dot-directories
        use_gitignore (bool): honor `.git/info/exclude` and every `.gitignore` and `.ignore` file

    Returns:
        ExcludeRuleSet: the compiled rules
    """
    repository = load_repository_patterns(root) if use_gitignore else []
    return compile_rules(
        patterns,
        include_hidden=include_hidden,
        repository_patterns=repository,
        ignore_files=IGNORE_FILE_NAMES if use_gitignore else (),
    )


def report_warnings(result: ScanResult) -> None:
    """Log every scan warning plus a per-reason summary."""
    for w in result.warnings:
        logger.warning("file_skipped", path=w.path, reason=str(w.reason), detail=w.detail)
    if result.warnings:
        counts = Counter(str(w.reason) for w in result.warnings)
        logger.info("scan_warnings", total=len(result.warnings), **dict(sorted(counts.items())))


def build_prompt(
    root: Path,
    *,
    patterns: Sequence[str],
    budget: ScanBudget,
    include_hidden: bool = False,
    use_gitignore: bool = True,
) -> PromptBundle:
    """Collect files under `root` and render them as a prompt document.

    Rules are compiled (and patterns validated) before anything is read, so a
    malformed pattern fails the call without touching the tree.

    Args:
        root (Path): the directory to scan
        patterns (Sequence[str]): caller-supplied exclude patterns
        budget (ScanBudget): size limits
        include_hidden (bool): keep dot-files and dot-directories
        use_gitignore (bool): honor the repository's own ignore files

    Returns:
        PromptBundle: the scan result and the rendered document
    """
    base = validate_directory(root)
    rules = build_rules(base, patterns, include_hidden=include_hidden, use_gitignore=use_gitignore)
    result = scan(base, rules, budget)
    report_warnings(result)
    return PromptBundle(result=result, document=format_prompt(result.entries))


def generate_readme(bundle: PromptBundle, *, generator: ReadmeGenerator, instructions: str) -> str:
    """Send the prompt document and the instruction template to the generator."""
    logger.info(
        "readme_requested",
        files=len(bundle.result.entries),
        total_bytes=bundle.result.total_bytes,
        document_chars=len(bundle.document),
    )
    return generator.generate(instructions, bundle.document)
