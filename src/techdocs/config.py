from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

VERSION = "0.1.0"

KIB = 1024
MIB = 1024 * KIB

DEFAULT_MAX_FILE_SIZE_KB = 100
DEFAULT_MAX_TOTAL_SIZE_MB = 10

# Binary sniffing: only the first BINARY_SNIFF_BYTES of a file are inspected.
# A NUL byte anywhere in that window marks the file as binary; otherwise it is
# binary when more than BINARY_CONTROL_RATIO of the window are control bytes.
BINARY_SNIFF_BYTES = 8192
BINARY_CONTROL_RATIO = 0.30
TEXT_CONTROL_BYTES = frozenset(b"\t\n\r\f\b\x1b")


class Language(StrEnum):
    """Language inferred from a file name, used to tag fenced code blocks.

    This is a static heuristic based on extensions and a handful of well-known
    file names. Anything not listed is UNKNOWN and rendered with a bare fence.
    """

    BASH = auto()
    C = auto()
    CPP = auto()
    CSHARP = auto()
    CSS = auto()
    DART = auto()
    DOCKERFILE = auto()
    GO = auto()
    GROOVY = auto()
    HASKELL = auto()
    HTML = auto()
    INI = auto()
    JAVA = auto()
    JAVASCRIPT = auto()
    JSON = auto()
    KOTLIN = auto()
    LUA = auto()
    MAKEFILE = auto()
    MARKDOWN = auto()
    PERL = auto()
    PHP = auto()
    POWERSHELL = auto()
    PROTOBUF = auto()
    PYTHON = auto()
    R = auto()
    RUBY = auto()
    RUST = auto()
    SCALA = auto()
    SCSS = auto()
    SQL = auto()
    SVELTE = auto()
    SWIFT = auto()
    TEXT = auto()
    TOML = auto()
    TSX = auto()
    TYPESCRIPT = auto()
    VUE = auto()
    XML = auto()
    YAML = auto()
    ZIG = auto()
    UNKNOWN = auto()


EXT2LANG: dict[str, Language] = {
    ".bash": Language.BASH,
    ".c": Language.C,
    ".cc": Language.CPP,
    ".cfg": Language.INI,
    ".cjs": Language.JAVASCRIPT,
    ".conf": Language.INI,
    ".cpp": Language.CPP,
    ".cs": Language.CSHARP,
    ".css": Language.CSS,
    ".cxx": Language.CPP,
    ".dart": Language.DART,
    ".go": Language.GO,
    ".gradle": Language.GROOVY,
    ".groovy": Language.GROOVY,
    ".h": Language.C,
    ".hpp": Language.CPP,
    ".hs": Language.HASKELL,
    ".htm": Language.HTML,
    ".html": Language.HTML,
    ".ini": Language.INI,
    ".java": Language.JAVA,
    ".js": Language.JAVASCRIPT,
    ".json": Language.JSON,
    ".jsx": Language.JAVASCRIPT,
    ".kt": Language.KOTLIN,
    ".kts": Language.KOTLIN,
    ".lua": Language.LUA,
    ".markdown": Language.MARKDOWN,
    ".md": Language.MARKDOWN,
    ".mjs": Language.JAVASCRIPT,
    ".php": Language.PHP,
    ".pl": Language.PERL,
    ".proto": Language.PROTOBUF,
    ".ps1": Language.POWERSHELL,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
    ".r": Language.R,
    ".rb": Language.RUBY,
    ".rs": Language.RUST,
    ".scala": Language.SCALA,
    ".scss": Language.SCSS,
    ".sh": Language.BASH,
    ".sql": Language.SQL,
    ".svelte": Language.SVELTE,
    ".swift": Language.SWIFT,
    ".toml": Language.TOML,
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TSX,
    ".txt": Language.TEXT,
    ".vue": Language.VUE,
    ".xml": Language.XML,
    ".yaml": Language.YAML,
    ".yml": Language.YAML,
    ".zig": Language.ZIG,
    ".zsh": Language.BASH,
}

NAME2LANG: dict[str, Language] = {
    "dockerfile": Language.DOCKERFILE,
    "makefile": Language.MAKEFILE,
    "gnumakefile": Language.MAKEFILE,
    "gemfile": Language.RUBY,
    "rakefile": Language.RUBY,
}

# Built-in exclusions, always compiled ahead of repository and user patterns.
DEFAULT_EXCLUDES: tuple[str, ...] = (
    # version control
    ".git/",
    ".hg/",
    ".svn/",
    # build output
    "target/",
    "build/",
    "dist/",
    "out/",
    "bin/",
    "Debug/",
    "Release/",
    # dependency caches and virtualenvs
    "node_modules/",
    ".venv/",
    "venv/",
    "__pycache__/",
    ".mypy_cache/",
    ".ruff_cache/",
    ".pytest_cache/",
    ".tox/",
    ".ipynb_checkpoints/",
    # editors and OS noise
    ".idea/",
    ".vscode/",
    ".DS_Store",
)

HIDDEN_PATTERN = ".*"

# Per-directory ignore files, lowest precedence first.
IGNORE_FILE_NAMES: tuple[str, ...] = (".gitignore", ".ignore")


def guess_language(name: str) -> Language:
    """Guess the language of a file from its name.

    Well-known file names (e.g. `Dockerfile`) take precedence over the extension.

    Args:
        name (str): The file name (final path segment).

    Returns:
        Language: The guessed language, or Language.UNKNOWN.
    """
    low = name.lower()
    if low in NAME2LANG:
        return NAME2LANG[low]
    return EXT2LANG.get(Path(low).suffix, Language.UNKNOWN)


def fence_tag_for(language: Language) -> str:
    """Get the code fence tag for a language ("" when unknown)."""
    return "" if language is Language.UNKNOWN else language.value


class ScanBudget(BaseModel):
    """Size limits applied while collecting files.

    Attributes:
        max_file_size_bytes: Files larger than this are skipped whole.
        max_total_size_bytes: Aggregate cap over all accepted files.
    """

    model_config = ConfigDict(frozen=True)

    max_file_size_bytes: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_KB * KIB,
        ge=0,
        description="Per-file size limit in bytes",
    )
    max_total_size_bytes: int = Field(
        default=DEFAULT_MAX_TOTAL_SIZE_MB * MIB,
        ge=0,
        description="Aggregate size limit in bytes",
    )

    @classmethod
    def from_limits(cls, max_file_size_kb: int, max_total_size_mb: int) -> ScanBudget:
        """Build a budget from CLI units (KiB per file, MiB in total)."""
        return cls(
            max_file_size_bytes=max_file_size_kb * KIB,
            max_total_size_bytes=max_total_size_mb * MIB,
        )


class FileEntry(BaseModel):
    """One collected file.

    Attributes:
        relative_path: Path segments relative to the scan root.
        content: Text decoded as UTF-8, invalid sequences replaced.
        size_bytes: Length of the raw content before decoding.
    """

    model_config = ConfigDict(frozen=True)

    relative_path: tuple[str, ...] = Field(..., min_length=1, description="Segments relative to the scan root")
    content: str = Field(..., description="Lossily decoded text content")
    size_bytes: int = Field(..., ge=0, description="Raw size in bytes")

    @property
    def rel(self) -> str:
        """POSIX form of the relative path."""
        return "/".join(self.relative_path)

    @computed_field
    @property
    def language_hint(self) -> Language:
        """Language guessed from the file name."""
        return guess_language(self.relative_path[-1])

    @property
    def fence_tag(self) -> str:
        return fence_tag_for(self.language_hint)


class SkipReason(StrEnum):
    """Why a file or directory was left out of a scan."""

    UNREADABLE = auto()
    BINARY = auto()
    TOO_LARGE = auto()
    OVER_BUDGET = auto()
    SYMLINK_ESCAPE = auto()
    SYMLINK_CYCLE = auto()
    DUPLICATE = auto()


class ScanWarning(BaseModel):
    """A non-fatal event recorded during a scan."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="POSIX path relative to the scan root")
    reason: SkipReason
    detail: str = ""


class ScanResult(BaseModel):
    """Outcome of one collection run: accepted entries plus recorded warnings."""

    root: Path
    entries: list[FileEntry] = Field(default_factory=list)
    warnings: list[ScanWarning] = Field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(e.size_bytes for e in self.entries)
