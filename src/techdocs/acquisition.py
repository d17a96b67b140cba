"""Resolve a path-or-URL reference into a local directory.

Remote references are shallow-cloned into a temporary directory that is owned
by a single invocation and removed when the scope exits, on success or failure.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess  # noqa: S404
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from techdocs.exceptions import AcquisitionError, GitCommandError
from techdocs.file_manipulation import validate_directory
from techdocs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator

REMOTE_SCHEMES = frozenset({"http", "https", "ssh", "git", "file"})
_SCP_LIKE = re.compile(r"^[\w.-]+@[\w.-]+:(?!//)[\w./~-]+$")


def is_remote_reference(ref: str) -> bool:
    """Tell remote repository URLs apart from local filesystem paths.

    Args:
        ref (str): a path or URL as typed by the user

    Returns:
        bool: True for `http(s)://`, `ssh://`, `git://`, `file://` URLs and
            scp-like `user@host:owner/repo.git` references
    """
    ref = ref.strip()
    parsed = urlparse(ref)
    if parsed.scheme.lower() in REMOTE_SCHEMES:
        return bool(parsed.netloc) or parsed.scheme.lower() == "file"
    return bool(_SCP_LIKE.match(ref))


def checkout_name(url: str) -> str:
    """Directory name for a checkout of `url` (the repository name, without `.git`)."""
    tail = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    name = re.sub(r"[^\w.-]", "_", tail.removesuffix(".git"))
    return name if name.strip(".") else "checkout"


def clone_repository(
    url: str,
    target: Path,
    *,
    timeout: float | None = None,
    depth: int | None = 1,
) -> Path:
    """Clone `url` into `target` with the git CLI.

    Args:
        url (str): the remote repository reference
        target (Path): the directory to clone into (must not exist yet)
        timeout (float | None): seconds before the clone is aborted
        depth (int | None): shallow clone depth; None clones full history

    Raises:
        AcquisitionError: if git is missing or the clone times out
        GitCommandError: if git exits with a non-zero status

    Returns:
        Path: the checkout directory
    """
    git = shutil.which("git")
    if git is None:
        raise AcquisitionError(message="git executable not found on PATH.")

    cmd = [git, "clone", "--quiet"]
    if depth is not None:
        cmd.extend(["--depth", str(depth)])
    cmd.extend(["--", url, str(target)])
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

    logger.info("clone_started", url=url, depth=depth)
    try:
        out = subprocess.run(  # noqa: S603
            cmd,
            text=True,
            capture_output=True,
            check=False,
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired as e:
        raise AcquisitionError(message=f"git clone of {url} timed out after {timeout}s.") from e
    except OSError as e:
        raise AcquisitionError(message=f"git clone of {url} could not start: {e}") from e

    if out.returncode != 0:
        logger.warning("clone_failed", url=url, returncode=out.returncode)
        raise GitCommandError(
            command=f"git clone {url}",
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr,
        )
    logger.info("clone_completed", url=url, path=str(target))
    return target


@contextmanager
def acquire_source(
    ref: str,
    *,
    timeout: float | None = None,
    depth: int | None = 1,
) -> Iterator[Path]:
    """Yield a local directory for `ref`, cloning remote references into a temp dir.

    Local paths are validated and yielded as-is (no copy). Remote references get
    a fresh `tempfile.TemporaryDirectory`; it is removed when the block exits,
    whether the pipeline succeeded or raised.

    Args:
        ref (str): local path or remote repository URL
        timeout (float | None): clone timeout in seconds
        depth (int | None): shallow clone depth

    Raises:
        SourceNotFoundError: if a local path is missing or not a directory
        AcquisitionError: if the clone fails

    Yields:
        Path: the directory to scan
    """
    if not is_remote_reference(ref):
        yield validate_directory(Path(ref))
        return

    with tempfile.TemporaryDirectory(prefix="techdocs-") as tmp:
        checkout = clone_repository(ref, Path(tmp) / checkout_name(ref), timeout=timeout, depth=depth)
        try:
            yield checkout
        finally:
            logger.debug("checkout_released", path=str(checkout))
