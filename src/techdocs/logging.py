from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_STRUCTLOG_CONFIGURED = False


def setup_logging(
    filename: str | Path | None = None,
    *,
    verbose: bool = False,
    force: bool = False,
) -> structlog.BoundLogger:
    """Set up structured logging for the techdocs package.

    structlog is configured once. The stdlib root handlers are only installed
    when none exist yet, unless `force` replaces them so a later `--log-file`
    or `--verbose` takes effect.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        verbose: Emit debug events when True.
        force: Replace handlers already installed on the root logger.

    Returns:
        A structlog logger instance configured for the techdocs package.
    """
    global _STRUCTLOG_CONFIGURED  # noqa: PLW0603
    if force or not logging.getLogger().handlers:
        handler: logging.Handler
        if filename:
            handler = logging.FileHandler(str(filename), encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            handlers=[handler],
            format="%(message)s",
            force=force,
        )
    if not _STRUCTLOG_CONFIGURED:
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _STRUCTLOG_CONFIGURED = True

    return structlog.get_logger("techdocs")


logger = setup_logging()
