from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(kw_only=True, eq=False)
class TechDocsError(Exception):
    """Base exception for errors in the techdocs package."""

    message: str = "techdocs failed."

    def __str__(self) -> str:
        return self.message


@dataclass(kw_only=True, eq=False)
class InputError(TechDocsError):
    """Raised when a path, URL or exclude pattern supplied by the caller is unusable."""

    message: str = "Invalid input."


@dataclass(kw_only=True, eq=False)
class InvalidPatternError(InputError):
    """Raised when one or more exclude patterns cannot be compiled."""

    patterns: dict[str, str] = field(default_factory=dict)
    message: str = "Invalid exclude pattern(s)."

    def __str__(self) -> str:
        details = "; ".join(f"{pat!r}: {reason}" for pat, reason in self.patterns.items())
        return f"{self.message} {details}" if details else self.message


@dataclass(kw_only=True, eq=False)
class SourceNotFoundError(InputError):
    """Raised when a local source path does not exist or is not a directory."""

    path: Path
    message: str = "Source path does not exist or is not a directory."

    def __str__(self) -> str:
        return f"{self.message} ({self.path})"


@dataclass(kw_only=True, eq=False)
class AcquisitionError(TechDocsError):
    """Raised when a remote repository cannot be checked out."""

    message: str = "Could not acquire the source repository."


@dataclass(kw_only=True, eq=False)
class GitCommandError(AcquisitionError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    message: str = "git command failed."

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        base = f"{self.message} `{self.command}` exited with {self.returncode}"
        return f"{base}: {detail}" if detail else base


@dataclass(kw_only=True, eq=False)
class GenerationError(TechDocsError):
    """Raised when the generation API fails (network, auth, rate limit, bad payload)."""

    status_code: int | None = None
    message: str = "README generation failed."

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


@dataclass(kw_only=True, eq=False)
class MissingCredentialError(GenerationError):
    """Raised when the API key for the generation client is not configured."""

    variable: str = "ANTHROPIC_API_KEY"
    message: str = "API key is not set."

    def __str__(self) -> str:
        return f"{self.message} Set the {self.variable} environment variable."
