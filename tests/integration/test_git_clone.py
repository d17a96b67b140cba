from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from techdocs.acquisition import acquire_source
from techdocs.config import ScanBudget
from techdocs.exceptions import GitCommandError
from techdocs.pipeline import build_prompt

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed"),
]


def git(cwd: Path, *args: str) -> None:
    subprocess.run(  # noqa: S603
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],  # noqa: S607
        cwd=cwd,
        check=True,
        capture_output=True,
    )


@pytest.fixture
def origin(tmp_path: Path) -> Path:
    repo = tmp_path / "origin" / "demo"
    (repo / "src").mkdir(parents=True)
    (repo / "src" / "lib.rs").write_text("pub fn answer() -> u32 { 42 }\n", encoding="utf-8")
    (repo / ".gitignore").write_text("*.tmp\n", encoding="utf-8")
    (repo / "Cargo.toml").write_text('[package]\nname = "demo"\n', encoding="utf-8")
    git(repo, "init", "--quiet")
    git(repo, "add", ".")
    git(repo, "commit", "--quiet", "-m", "init")
    return repo


def test_clone_scan_and_cleanup(origin: Path) -> None:
    with acquire_source(origin.as_uri(), timeout=60) as root:
        checkout = root
        (root / "scratch.tmp").write_text("local only\n", encoding="utf-8")
        bundle = build_prompt(root, patterns=[], budget=ScanBudget())

    assert checkout.name == "demo"
    assert [e.rel for e in bundle.result.entries] == ["Cargo.toml", "src/lib.rs"]
    assert "## src/lib.rs\n```rust\n" in bundle.document
    assert not checkout.exists()


def test_clone_of_missing_repository_fails(tmp_path: Path) -> None:
    with pytest.raises(GitCommandError), acquire_source((tmp_path / "nothing-here").as_uri(), timeout=60):
        pass
