from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from techdocs.exceptions import GenerationError, InputError, MissingCredentialError
from techdocs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Mapping

API_KEY_ENV = "ANTHROPIC_API_KEY"
MODEL_ENV = "TECHDOCS_MODEL"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 120.0
PROMPTS_DIR = Path(__file__).parent / "prompts"


def load_instructions(prompt_file: Path | None = None) -> str:
    """Load the README instruction template.

    Args:
        prompt_file (Path | None): a template to use instead of the packaged
            `prompts/readme.txt`

    Raises:
        InputError: if `prompt_file` cannot be read

    Returns:
        str: the template text
    """
    if prompt_file is None:
        return (PROMPTS_DIR / "readme.txt").read_text(encoding="utf-8")
    try:
        return prompt_file.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(message=f"Cannot read prompt file {prompt_file}: {e}") from e


class GenerationConfig(BaseModel):
    """Connection settings for the generation API."""

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr
    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    api_url: str = ANTHROPIC_API_URL
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> GenerationConfig:  # noqa: ANN401
        """Build a config from environment variables.

        Args:
            environ (Mapping[str, str] | None): variables to read, `os.environ` by default
            **overrides: explicit field values; None values are ignored

        Raises:
            MissingCredentialError: if the API key variable is unset or blank

        Returns:
            GenerationConfig: the configuration
        """
        env = os.environ if environ is None else environ
        api_key = (env.get(API_KEY_ENV) or "").strip()
        if not api_key:
            raise MissingCredentialError(variable=API_KEY_ENV)
        values: dict[str, Any] = {"api_key": api_key}
        if env.get(MODEL_ENV):
            values["model"] = env[MODEL_ENV]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class ReadmeGenerator(ABC):
    """Turns an instruction template plus a prompt document into README text."""

    @abstractmethod
    def generate(self, instructions: str, document: str) -> str:
        pass


class AnthropicReadmeGenerator(ReadmeGenerator):
    """README generator backed by the Anthropic Messages API.

    Failures are raised as `GenerationError` with the remote message; there are
    no retries here.
    """

    def __init__(self, config: GenerationConfig, *, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "x-api-key": self.config.api_key.get_secret_value(),
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_payload(self, instructions: str, document: str) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [{"role": "user", "content": f"{instructions}\n\n{document}"}],
        }

    def generate(self, instructions: str, document: str) -> str:
        payload = self.build_payload(instructions, document)
        logger.info("generation_started", model=self.config.model, document_chars=len(document))
        try:
            with httpx.Client(timeout=self.config.timeout, transport=self._transport) as client:
                response = client.post(self.config.api_url, headers=self._headers(), json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                message=f"Generation API error: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationError(message=f"Generation API timed out after {self.config.timeout}s.") from e
        except httpx.HTTPError as e:
            raise GenerationError(message=f"Generation API request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(message=f"Generation API returned invalid JSON: {e}") from e

        text = extract_text(data)
        logger.info("generation_completed", model=self.config.model, output_chars=len(text))
        return text


def extract_text(data: Any) -> str:  # noqa: ANN401
    """Concatenate the text blocks of a Messages API response.

    Raises:
        GenerationError: if the response carries no text block
    """
    blocks = data.get("content") if isinstance(data, dict) else None
    parts = [
        b["text"]
        for b in blocks or []
        if isinstance(b, dict) and b.get("type", "text") == "text" and isinstance(b.get("text"), str)
    ]
    if not parts:
        raise GenerationError(message="Generation API response contained no text.")
    return "".join(parts)
