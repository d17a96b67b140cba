from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from techdocs.config import DEFAULT_EXCLUDES, IGNORE_FILE_NAMES
from techdocs.exceptions import InputError, InvalidPatternError
from techdocs.ignore_rules import (
    compile_rules,
    load_directory_patterns,
    load_repository_patterns,
    normalize_patterns,
    validate_patterns,
)


@pytest.mark.unit
def test_normalize_patterns_drops_blanks_and_comments() -> None:
    patterns = ["*.log\n", "", "   ", "# comment", "build/\r\n", "\\#literal"]

    assert normalize_patterns(patterns) == ["*.log", "build/", "\\#literal"]


@pytest.mark.unit
def test_defaults_exclude_build_and_vcs_directories() -> None:
    rules = compile_rules()

    assert rules.matches("node_modules", is_directory=True)
    assert rules.matches(("pkg", "target"), is_directory=True)
    assert rules.matches(".git", is_directory=True)
    assert not rules.matches("src", is_directory=True)
    assert not rules.matches("src/main.rs")
    assert rules.patterns[: len(DEFAULT_EXCLUDES)] == DEFAULT_EXCLUDES


@pytest.mark.unit
def test_directory_only_pattern_does_not_match_files() -> None:
    rules = compile_rules(include_hidden=True)

    assert rules.matches("build", is_directory=True)
    assert not rules.matches("build")


@pytest.mark.unit
def test_hidden_entries_excluded_unless_requested() -> None:
    assert compile_rules().matches(".env")
    assert compile_rules().matches(("src", ".cache"), is_directory=True)
    assert not compile_rules(include_hidden=True).matches(".env")


@pytest.mark.unit
def test_user_patterns_apply_at_any_depth() -> None:
    rules = compile_rules(["*.log"])

    assert rules.matches("app.log")
    assert rules.matches(PurePosixPath("logs/2024/app.log"))
    assert not rules.matches("app.py")


@pytest.mark.unit
def test_negation_reincludes_and_last_match_wins() -> None:
    rules = compile_rules(["*.log", "!keep.log"])

    assert rules.matches("drop.log")
    assert not rules.matches("keep.log")
    assert not rules.matches("nested/keep.log")


@pytest.mark.unit
def test_user_patterns_override_repository_patterns() -> None:
    rules = compile_rules(["!generated.py"], repository_patterns=["generated.py"])

    assert not rules.matches("generated.py")


@pytest.mark.unit
def test_empty_path_and_root_never_match() -> None:
    rules = compile_rules(["*"])

    assert not rules.matches("")
    assert not rules.matches(".")
    assert not rules.matches(())


@pytest.mark.unit
def test_malformed_patterns_are_all_reported() -> None:
    with pytest.raises(InvalidPatternError) as exc_info:
        compile_rules(["*.log", "!", "/"])

    err = exc_info.value
    assert set(err.patterns) == {"!", "/"}
    assert isinstance(err, InputError)
    assert "'!'" in str(err)


@pytest.mark.unit
def test_validate_patterns_returns_normalized_patterns() -> None:
    assert validate_patterns(["# skip", "*.tmp", ""]) == ["*.tmp"]


@pytest.mark.unit
def test_load_repository_patterns_reads_root_ignore_files(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("# build output\n*.o\n!\nsecret.txt\n", encoding="utf-8")
    (tmp_path / ".ignore").write_text("!secret.txt\n", encoding="utf-8")
    info = tmp_path / ".git" / "info"
    info.mkdir(parents=True)
    (info / "exclude").write_text("local/\n", encoding="utf-8")

    patterns = load_repository_patterns(tmp_path)

    assert patterns == ["local/", "*.o", "secret.txt", "!secret.txt"]


@pytest.mark.unit
def test_load_repository_patterns_without_ignore_files(tmp_path: Path) -> None:
    assert load_repository_patterns(tmp_path) == []


@pytest.mark.unit
def test_load_directory_patterns_skips_invalid_lines(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("gen.js\n/\n", encoding="utf-8")

    assert load_directory_patterns(tmp_path) == ["gen.js"]
    assert load_directory_patterns(tmp_path / "missing") == []


@pytest.mark.unit
def test_directory_layer_is_anchored_to_its_directory() -> None:
    rules = compile_rules(ignore_files=IGNORE_FILE_NAMES)
    web = rules.with_directory(("web",), ["gen.js", "/assets/"])

    assert web.matches("web/gen.js")
    assert web.matches("web/lib/gen.js")
    assert web.matches(("web", "assets"), is_directory=True)
    assert not web.matches(("web", "lib", "assets"), is_directory=True)
    assert not web.matches("gen.js")
    assert not web.matches("api/gen.js")
    assert not rules.matches("web/gen.js")


@pytest.mark.unit
def test_layer_precedence_base_then_nested_then_caller() -> None:
    rules = compile_rules(["!web/keep.log"], repository_patterns=["*.log"])
    web = rules.with_directory(("web",), ["!*.log"]).with_directory(("web", "deep"), ["*.log"])

    assert rules.matches("web/a.log")
    assert not web.matches("web/a.log")
    assert web.matches("web/deep/a.log")
    assert not web.matches("web/keep.log")


@pytest.mark.unit
def test_with_directory_without_patterns_returns_same_rules() -> None:
    rules = compile_rules()

    assert rules.with_directory(("web",), []) is rules
