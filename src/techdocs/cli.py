"""
techdocs: Generate a README for a codebase with an LLM.

Overview
--------
The tool walks a local directory (or a shallow clone of a remote repository),
filters it with gitignore-style rules, and renders the surviving text files into
a single size-bounded prompt document. Subcommands:

- `list`   print the files that would be collected,
- `prompt` print the prompt document,
- `readme` send the document to the generation API and print the README,
- `serve`  run the HTTP API (`POST /generate`, `GET /health`).

Usage
-----
Run `techdocs --help` (or `python -m techdocs.cli --help`). Common examples:
    - Preview what gets collected:
        techdocs list . --tree -e "*.log"

    - Build the prompt from a GitHub repository:
        techdocs prompt https://github.com/owner/repo --max-total-size-mb 2 --output prompt.md

    - Generate a README (needs ANTHROPIC_API_KEY):
        techdocs readme ./my-project --output README.md
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from pydantic import ValidationError

from techdocs.acquisition import acquire_source
from techdocs.config import DEFAULT_MAX_FILE_SIZE_KB, DEFAULT_MAX_TOTAL_SIZE_MB, VERSION
from techdocs.exceptions import TechDocsError
from techdocs.file_manipulation import build_tree_lines
from techdocs.generation import AnthropicReadmeGenerator, GenerationConfig, load_instructions
from techdocs.ignore_rules import validate_patterns
from techdocs.logging import logger, setup_logging
from techdocs.pipeline import build_prompt, generate_readme
from techdocs.settings import ENV_FILE, Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from techdocs.pipeline import PromptBundle


def common_parser() -> argparse.ArgumentParser:
    """Options shared by every subcommand."""
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("-v", "--verbose", action="store_true", help="Emit debug logs.")
    return p


def scan_parser() -> argparse.ArgumentParser:
    """Options shared by the subcommands that scan a codebase."""
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument(
        "path_or_url",
        nargs="?",
        default=".",
        help="Local directory or remote repository URL.",
    )
    p.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=[],
        help="Exclude pattern in .gitignore syntax (repeatable, comma-separated).",
    )
    p.add_argument(
        "--max-file-size-kb",
        type=int,
        default=DEFAULT_MAX_FILE_SIZE_KB,
        help="Skip files larger than this (KiB).",
    )
    p.add_argument(
        "--max-total-size-mb",
        type=int,
        default=DEFAULT_MAX_TOTAL_SIZE_MB,
        help="Aggregate size cap (MiB).",
    )
    p.add_argument("--include-hidden", action="store_true", help="Include dot-files and dot-directories.")
    p.add_argument("--no-gitignore", action="store_true", help="Ignore the repository's own .gitignore.")
    p.add_argument("--clone-timeout", type=float, default=300.0, help="Seconds before a clone is aborted.")
    return p


def generation_parser() -> argparse.ArgumentParser:
    """Options for the subcommands that call the generation API."""
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--prompt-file", type=Path, default=None, help="README instruction template.")
    p.add_argument("--model", type=str, default=None, help="Generation model (default: $TECHDOCS_MODEL or built-in).")
    p.add_argument("--max-tokens", type=int, default=None, help="Maximum tokens to generate.")
    p.add_argument("--timeout", type=float, default=None, help="Generation request timeout (seconds).")
    return p


def build_parser() -> argparse.ArgumentParser:
    common = common_parser()
    scan_opts = scan_parser()
    gen_opts = generation_parser()

    p = argparse.ArgumentParser(
        prog="techdocs",
        description="Generate a README for a codebase with an LLM.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    sub = p.add_subparsers(dest="command", required=True)

    list_p = sub.add_parser("list", parents=[common, scan_opts], help="List the files that would be collected.")
    list_p.add_argument("--tree", action="store_true", help="Render the list as a tree.")

    prompt_p = sub.add_parser("prompt", parents=[common, scan_opts], help="Print the prompt document.")
    prompt_p.add_argument("--output", type=Path, default=None, help="Write to this file instead of stdout.")

    readme_p = sub.add_parser(
        "readme",
        parents=[common, scan_opts, gen_opts],
        help="Generate a README with the generation API.",
    )
    readme_p.add_argument("--output", type=Path, default=None, help="Write to this file instead of stdout.")

    serve_p = sub.add_parser("serve", parents=[common, gen_opts], help="Run the HTTP API.")
    serve_p.add_argument("--host", type=str, default="127.0.0.1", help="Bind address.")
    serve_p.add_argument("--port", type=int, default=3000, help="Port.")
    serve_p.add_argument(
        "--max-file-size-kb",
        type=int,
        default=DEFAULT_MAX_FILE_SIZE_KB,
        help="Skip files larger than this (KiB).",
    )
    serve_p.add_argument(
        "--max-total-size-mb",
        type=int,
        default=DEFAULT_MAX_TOTAL_SIZE_MB,
        help="Aggregate size cap (MiB).",
    )
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    args = build_parser().parse_args(argv)
    return Settings(**vars(args))


def write_output(text: str, output: Path | None) -> None:
    """Write `text` to `output`, or to stdout when no file is given."""
    if output is None:
        sys.stdout.write(text if text.endswith("\n") or not text else text + "\n")
        return
    output.write_text(text, encoding="utf-8")
    logger.info("output_written", path=str(output), chars=len(text))


def prepare(settings: Settings, root: Path) -> PromptBundle:
    return build_prompt(
        root,
        patterns=settings.exclude,
        budget=settings.budget,
        include_hidden=settings.include_hidden,
        use_gitignore=not settings.no_gitignore,
    )


def run_list(settings: Settings) -> int:
    with acquire_source(settings.path_or_url, timeout=settings.clone_timeout) as root:
        bundle = prepare(settings, root)
    rels = [e.rel for e in bundle.result.entries]
    lines = build_tree_lines(root.name or str(root), rels) if settings.tree else rels
    write_output("\n".join(lines), None)
    return 0


def run_prompt(settings: Settings) -> int:
    with acquire_source(settings.path_or_url, timeout=settings.clone_timeout) as root:
        bundle = prepare(settings, root)
    write_output(bundle.document, settings.output)
    return 0


def make_generator(settings: Settings) -> AnthropicReadmeGenerator:
    config = GenerationConfig.from_env(
        model=settings.model,
        max_tokens=settings.max_tokens,
        timeout=settings.timeout,
    )
    return AnthropicReadmeGenerator(config)


def run_readme(settings: Settings) -> int:
    instructions = load_instructions(settings.prompt_file)
    generator = make_generator(settings)
    with acquire_source(settings.path_or_url, timeout=settings.clone_timeout) as root:
        bundle = prepare(settings, root)
    readme = generate_readme(bundle, generator=generator, instructions=instructions)
    write_output(readme, settings.output)
    return 0


def run_serve(settings: Settings) -> int:
    import uvicorn  # noqa: PLC0415

    from techdocs.api import create_app  # noqa: PLC0415

    app = create_app(
        settings,
        generator=make_generator(settings),
        instructions=load_instructions(settings.prompt_file),
    )
    logger.info("server_starting", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


COMMANDS = {
    "list": run_list,
    "prompt": run_prompt,
    "readme": run_readme,
    "serve": run_serve,
}


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv(ENV_FILE)
    try:
        settings = parse_args(argv)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        print(f"error: {problems}", file=sys.stderr)  # noqa: T201
        return 1
    if settings.log_file or settings.verbose:
        setup_logging(settings.log_file or None, verbose=settings.verbose, force=True)

    try:
        validate_patterns(settings.exclude)
        return COMMANDS[settings.command](settings)
    except TechDocsError as e:
        logger.error("command_failed", command=settings.command, error=str(e), kind=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)  # noqa: T201
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
