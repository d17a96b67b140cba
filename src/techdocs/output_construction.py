from __future__ import annotations

import io
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from techdocs.config import FileEntry

_BACKTICK_RUN = re.compile(r"`+")
MIN_FENCE = 3


def fence_for(content: str) -> str:
    """Pick a backtick fence longer than any backtick run inside `content`.

    Args:
        content (str): the text that will sit inside the fenced block

    Returns:
        str: a fence of at least three backticks that cannot be closed early by the content
    """
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(content)), default=0)
    return "`" * max(MIN_FENCE, longest + 1)


def render_section(entry: FileEntry) -> str:
    """Render one file as a path header followed by a language-tagged fenced block.

    The content is written verbatim; a newline is only added before the closing
    fence when the content does not already end with one.

    Args:
        entry (FileEntry): the collected file

    Returns:
        str: the rendered section, ending with a newline
    """
    fence = fence_for(entry.content)
    body = entry.content if not entry.content or entry.content.endswith("\n") else entry.content + "\n"
    return f"## {entry.rel}\n{fence}{entry.fence_tag}\n{body}{fence}\n"


def format_prompt(entries: Sequence[FileEntry]) -> str:
    """Build the prompt document for a sequence of collected files.

    Sections appear in the order given (the collector's lexicographic order),
    separated by a blank line. Rendering is pure: the same entries always give
    the same document.

    Args:
        entries (Sequence[FileEntry]): the collected files

    Returns:
        str: the prompt document ("" when there are no entries)
    """
    out = io.StringIO()
    for idx, entry in enumerate(entries):
        if idx:
            out.write("\n")
        out.write(render_section(entry))
    return out.getvalue()


format = format_prompt  # noqa: A001
