from __future__ import annotations

from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, Field, field_validator

from techdocs.config import DEFAULT_MAX_FILE_SIZE_KB, DEFAULT_MAX_TOTAL_SIZE_MB, ScanBudget

ENV_FILE = find_dotenv(usecwd=True)


def trim_pattern(pattern: str) -> str:
    """Strip surrounding whitespace, keeping a trailing space escaped with a backslash."""
    pattern = pattern.lstrip()
    stripped = pattern.rstrip()
    if stripped.endswith("\\") and len(stripped) < len(pattern):
        return stripped + pattern[len(stripped)]
    return stripped


class Settings(BaseModel):
    """Configuration settings for the techdocs CLI and API."""

    command: str = Field(default="prompt", description="Subcommand to run.")
    path_or_url: str = Field(default=".", description="Local directory or remote repository URL.")
    exclude: list[str] = Field(default_factory=list, description="Extra exclude patterns (gitignore syntax).")
    max_file_size_kb: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_KB,
        ge=0,
        description="Files above this size (KiB) are skipped.",
    )
    max_total_size_mb: int = Field(
        default=DEFAULT_MAX_TOTAL_SIZE_MB,
        ge=0,
        description="Aggregate size cap (MiB).",
    )
    include_hidden: bool = Field(default=False, description="Include dot-files and dot-directories.")
    no_gitignore: bool = Field(default=False, description="Ignore the repository's own .gitignore.")
    clone_timeout: float | None = Field(default=300.0, gt=0, description="Seconds before a clone is aborted.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Emit debug logs.")

    output: Path | None = Field(default=None, description="Write the result here instead of stdout.")
    tree: bool = Field(default=False, description="Render `list` output as a tree.")

    prompt_file: Path | None = Field(default=None, description="README instruction template.")
    model: str | None = Field(default=None, description="Generation model override.")
    max_tokens: int | None = Field(default=None, gt=0, description="Generation max tokens override.")
    timeout: float | None = Field(default=None, gt=0, description="Generation request timeout (seconds).")

    host: str = Field(default="127.0.0.1", description="API bind address.")
    port: int = Field(default=3000, ge=0, le=65535, description="API port.")

    @field_validator("exclude", mode="before")
    @classmethod
    def split_excludes(cls, value: object) -> object:
        """Accept repeated flags as well as comma-separated values."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            patterns = (trim_pattern(p) for item in value for p in str(item).split(","))
            return [p for p in patterns if p]
        return value

    @property
    def budget(self) -> ScanBudget:
        return ScanBudget.from_limits(self.max_file_size_kb, self.max_total_size_mb)
