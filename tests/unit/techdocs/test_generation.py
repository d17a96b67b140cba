from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from techdocs.exceptions import GenerationError, InputError, MissingCredentialError
from techdocs.generation import (
    ANTHROPIC_VERSION,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    AnthropicReadmeGenerator,
    GenerationConfig,
    extract_text,
    load_instructions,
)


def make_generator(handler: httpx.MockTransport | None = None, **overrides: object) -> AnthropicReadmeGenerator:
    config = GenerationConfig.from_env({"ANTHROPIC_API_KEY": "sk-test"}, **overrides)
    return AnthropicReadmeGenerator(config, transport=handler)


@pytest.mark.unit
def test_config_from_env_reads_key_and_model() -> None:
    config = GenerationConfig.from_env({"ANTHROPIC_API_KEY": " sk-test ", "TECHDOCS_MODEL": "custom-model"})

    assert config.api_key.get_secret_value() == "sk-test"
    assert config.model == "custom-model"
    assert config.max_tokens == DEFAULT_MAX_TOKENS
    assert "sk-test" not in repr(config)


@pytest.mark.unit
def test_config_overrides_win_and_none_is_ignored() -> None:
    config = GenerationConfig.from_env({"ANTHROPIC_API_KEY": "k"}, model=None, max_tokens=128)

    assert config.model == DEFAULT_MODEL
    assert config.max_tokens == 128


@pytest.mark.unit
@pytest.mark.parametrize("environ", [{}, {"ANTHROPIC_API_KEY": "   "}])
def test_config_without_key_raises(environ: dict[str, str]) -> None:
    with pytest.raises(MissingCredentialError, match="ANTHROPIC_API_KEY"):
        GenerationConfig.from_env(environ)


@pytest.mark.unit
def test_generate_posts_instructions_and_document() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "# Demo\n"}]})

    readme = make_generator(httpx.MockTransport(handler)).generate("Write a README.", "## a.py\n```python\n```\n")

    assert readme == "# Demo\n"
    request = seen[0]
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == ANTHROPIC_VERSION
    body = json.loads(request.content)
    assert body["model"] == DEFAULT_MODEL
    assert body["max_tokens"] == DEFAULT_MAX_TOKENS
    assert body["messages"] == [
        {"role": "user", "content": "Write a README.\n\n## a.py\n```python\n```\n"},
    ]


@pytest.mark.unit
def test_generate_maps_error_status() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    with pytest.raises(GenerationError) as exc_info:
        make_generator(httpx.MockTransport(handler)).generate("i", "d")

    assert exc_info.value.status_code == 429
    assert "rate limited" in str(exc_info.value)


@pytest.mark.unit
def test_generate_maps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    with pytest.raises(GenerationError, match="connection refused"):
        make_generator(httpx.MockTransport(handler)).generate("i", "d")


@pytest.mark.unit
def test_generate_maps_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        msg = "slow"
        raise httpx.ReadTimeout(msg, request=request)

    with pytest.raises(GenerationError, match="timed out"):
        make_generator(httpx.MockTransport(handler)).generate("i", "d")


@pytest.mark.unit
def test_generate_rejects_invalid_json() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not json")

    with pytest.raises(GenerationError, match="invalid JSON"):
        make_generator(httpx.MockTransport(handler)).generate("i", "d")


@pytest.mark.unit
def test_extract_text_joins_text_blocks() -> None:
    data = {"content": [{"type": "text", "text": "a"}, {"type": "tool_use", "id": "x"}, {"type": "text", "text": "b"}]}

    assert extract_text(data) == "ab"
    with pytest.raises(GenerationError):
        extract_text({"content": []})
    with pytest.raises(GenerationError):
        extract_text(["unexpected"])


@pytest.mark.unit
def test_load_instructions_packaged_and_custom(tmp_path: Path) -> None:
    custom = tmp_path / "prompt.txt"
    custom.write_text("Be brief.", encoding="utf-8")

    assert "README" in load_instructions()
    assert load_instructions(custom) == "Be brief."
    with pytest.raises(InputError):
        load_instructions(tmp_path / "missing.txt")
