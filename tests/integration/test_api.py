from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from techdocs.api import create_app
from techdocs.exceptions import GenerationError
from techdocs.generation import ReadmeGenerator
from techdocs.settings import Settings


class EchoGenerator(ReadmeGenerator):
    """Returns the document it was given so tests can inspect the prompt."""

    def generate(self, instructions: str, document: str) -> str:
        return f"{instructions}|{document}"


class FailingGenerator(ReadmeGenerator):
    def generate(self, instructions: str, document: str) -> str:
        raise GenerationError(message="Generation API error: overloaded", status_code=529)


class BrokenGenerator(ReadmeGenerator):
    def generate(self, instructions: str, document: str) -> str:
        raise RuntimeError("connection pool exhausted")


def make_client(generator: ReadmeGenerator | None = None, **settings: object) -> TestClient:
    app = create_app(
        Settings(command="serve", **settings),
        generator=generator or EchoGenerator(),
        instructions="README please",
    )
    return TestClient(app)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.go").write_text("package main\n", encoding="utf-8")
    (tmp_path / "notes.log").write_text("noise\n", encoding="utf-8")
    return tmp_path


@pytest.mark.integration
def test_health() -> None:
    response = make_client().get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_generate_returns_readme(repo: Path) -> None:
    response = make_client().post(
        "/generate",
        json={"path_or_url": str(repo), "exclude_patterns": ["*.log"]},
    )

    assert response.status_code == 200
    readme = response.json()["readme"]
    assert readme == "README please|## src/main.go\n```go\npackage main\n```\n"


@pytest.mark.integration
def test_generate_without_exclude_patterns(repo: Path) -> None:
    response = make_client().post("/generate", json={"path_or_url": str(repo)})

    assert response.status_code == 200
    assert "## notes.log" in response.json()["readme"]


@pytest.mark.integration
def test_generate_applies_budget_from_settings(repo: Path) -> None:
    (repo / "big.txt").write_text("x" * 2048, encoding="utf-8")

    response = make_client(max_file_size_kb=1).post("/generate", json={"path_or_url": str(repo)})

    assert response.status_code == 200
    assert "big.txt" not in response.json()["readme"]


@pytest.mark.integration
def test_generate_missing_path_is_bad_request(tmp_path: Path) -> None:
    response = make_client().post("/generate", json={"path_or_url": str(tmp_path / "missing")})

    assert response.status_code == 400
    assert "does not exist" in response.json()["error"]


@pytest.mark.integration
def test_generate_unusable_path_is_bad_request() -> None:
    response = make_client().post("/generate", json={"path_or_url": "a" * 5000})

    assert response.status_code == 400
    assert response.headers["content-type"] == "application/json"
    assert "does not exist" in response.json()["error"]


@pytest.mark.integration
def test_generate_invalid_pattern_is_bad_request(repo: Path) -> None:
    response = make_client().post("/generate", json={"path_or_url": str(repo), "exclude_patterns": ["!"]})

    assert response.status_code == 400
    assert "Invalid exclude pattern" in response.json()["error"]


@pytest.mark.integration
@pytest.mark.parametrize(
    "body",
    [{}, {"path_or_url": ""}, {"path_or_url": 3}, {"path_or_url": ".", "exclude_patterns": "*.log"}],
)
def test_generate_malformed_body_is_bad_request(body: dict[str, object]) -> None:
    response = make_client().post("/generate", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")


@pytest.mark.integration
def test_generation_failure_is_server_error(repo: Path) -> None:
    response = make_client(FailingGenerator()).post("/generate", json={"path_or_url": str(repo)})

    assert response.status_code == 500
    assert "overloaded" in response.json()["error"]


@pytest.mark.integration
def test_missing_api_key_is_server_error(repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    client = TestClient(create_app(Settings(command="serve"), instructions="README please"))

    response = client.post("/generate", json={"path_or_url": str(repo)})

    assert response.status_code == 500
    assert "ANTHROPIC_API_KEY" in response.json()["error"]


@pytest.mark.integration
def test_unexpected_error_is_json_server_error(repo: Path) -> None:
    app = create_app(Settings(command="serve"), generator=BrokenGenerator(), instructions="README please")
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/generate", json={"path_or_url": str(repo)})

    assert response.status_code == 500
    assert response.json() == {"error": "connection pool exhausted"}
