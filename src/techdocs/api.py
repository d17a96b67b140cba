from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from techdocs.acquisition import acquire_source
from techdocs.config import VERSION
from techdocs.exceptions import AcquisitionError, InputError, TechDocsError
from techdocs.generation import AnthropicReadmeGenerator, GenerationConfig, ReadmeGenerator, load_instructions
from techdocs.ignore_rules import validate_patterns
from techdocs.logging import logger
from techdocs.pipeline import build_prompt, generate_readme
from techdocs.settings import Settings


class GenerateReadmeRequest(BaseModel):
    path_or_url: str = Field(..., min_length=1, description="Local directory or remote repository URL.")
    exclude_patterns: list[str] | None = Field(default=None, description="Extra patterns in .gitignore syntax.")


class GenerateReadmeResponse(BaseModel):
    readme: str


class ErrorResponse(BaseModel):
    error: str


def error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=str(exc)).model_dump())


def create_app(
    settings: Settings | None = None,
    *,
    generator: ReadmeGenerator | None = None,
    instructions: str | None = None,
) -> FastAPI:
    """Build the HTTP API.

    Collaborators are injected rather than read from globals. When `generator`
    is None, one is built from the environment on each request, so a missing
    API key surfaces as a 500 on `/generate` instead of at import time.

    Args:
        settings (Settings | None): scan limits and flags; defaults apply when None
        generator (ReadmeGenerator | None): README generator to use
        instructions (str | None): instruction template; the packaged one when None

    Returns:
        FastAPI: the application
    """
    cfg = settings or Settings(command="serve")
    template = instructions if instructions is not None else load_instructions(cfg.prompt_file)

    app = FastAPI(title="TechDocs API", version=VERSION)

    @app.exception_handler(RequestValidationError)
    async def handle_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
        )
        return error_response(400, ValueError(f"Invalid request: {errors}"))

    @app.exception_handler(TechDocsError)
    async def handle_techdocs_error(_: Request, exc: TechDocsError) -> JSONResponse:
        status_code = 400 if isinstance(exc, InputError | AcquisitionError) else 500
        logger.error("request_failed", status_code=status_code, error=str(exc), kind=type(exc).__name__)
        return error_response(status_code, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.error("request_failed", status_code=500, error=str(exc), kind=type(exc).__name__, exc_info=exc)
        return error_response(500, exc)

    def current_generator() -> ReadmeGenerator:
        if generator is not None:
            return generator
        return AnthropicReadmeGenerator(
            GenerationConfig.from_env(model=cfg.model, max_tokens=cfg.max_tokens, timeout=cfg.timeout),
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/generate",
        response_model=GenerateReadmeResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    def generate(request: GenerateReadmeRequest) -> GenerateReadmeResponse:
        logger.info("generate_requested", path_or_url=request.path_or_url)
        patterns = validate_patterns(request.exclude_patterns or [])
        readme_generator = current_generator()
        with acquire_source(request.path_or_url, timeout=cfg.clone_timeout) as root:
            bundle = build_prompt(
                root,
                patterns=patterns,
                budget=cfg.budget,
                include_hidden=cfg.include_hidden,
                use_gitignore=not cfg.no_gitignore,
            )
        readme = generate_readme(bundle, generator=readme_generator, instructions=template)
        return GenerateReadmeResponse(readme=readme)

    return app
