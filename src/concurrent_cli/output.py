"""Shared terminal sink for multiplexed output.

All tasks write through one OutputSink. Each write is a single call on the
underlying stream under a lock, so lines of different commands interleave
only at line boundaries.
"""

from __future__ import annotations

import logging
import threading
from typing import IO, Any

from rich.console import Console
from rich.text import Text

from .config import ColorMode
from .tags import Tag

__all__ = ["OutputSink", "create_console"]

logger = logging.getLogger(__name__)


def create_console(
    color_mode: ColorMode = ColorMode.AUTO,
    file: IO[str] | None = None,
) -> Console:
    """Create the rich Console used for rendering tags.

    Args:
        color_mode: Whether tags are colored
        file: Target stream (default stdout)

    Returns:
        Configured Console
    """
    kwargs: dict[str, Any] = {}
    if color_mode is ColorMode.ALWAYS:
        kwargs["force_terminal"] = True
    elif color_mode is ColorMode.NEVER:
        kwargs["color_system"] = None
    return Console(file=file, highlight=False, **kwargs)


class OutputSink:
    """Line-granular writer shared by every command of a run.

    Tags are rendered from styled text to terminal escape sequences once
    and cached; child output is written verbatim after the tag.

    Example:
        sink = OutputSink(create_console())
        sink.line(tag, b"listening on :8080\\n")
        sink.status(tag, "done")
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console if console is not None else create_console()
        self._lock = threading.Lock()
        self._rendered: dict[Tag, str] = {}

    @property
    def width(self) -> int:
        """Terminal width in columns."""
        return self.console.width

    def _render(self, text: Text) -> str:
        # Text is passed through as-is: no markup, emoji codes or highlighting.
        with self.console.capture() as capture:
            self.console.print(
                text,
                end="",
                soft_wrap=True,
                markup=False,
                emoji=False,
                highlight=False,
            )
        return capture.get()

    def _prefix(self, tag: Tag | None) -> str:
        if tag is None:
            return ""
        rendered = self._rendered.get(tag)
        if rendered is None:
            rendered = self._render(tag.render()) + " "
            self._rendered[tag] = rendered
        return rendered

    def write(self, text: str) -> None:
        """Write already formatted text in one call and flush."""
        with self._lock:
            stream = self.console.file
            stream.write(text)
            stream.flush()

    def line(self, tag: Tag, data: bytes) -> None:
        """Write one line of child output behind its tag.

        Args:
            tag: Tag of the producing command
            data: Raw line including its newline; a final line without one
                gets a newline appended
        """
        text = data.decode("utf-8", errors="replace")
        if not text.endswith("\n"):
            text += "\n"
        self.write(self._prefix(tag) + text)

    def status(self, tag: Tag, message: str) -> None:
        """Write a lifecycle message such as ``done``."""
        self.write(f"{self._prefix(tag)}{message}\n")

    def error(self, tag: Tag | None, error: BaseException | str) -> None:
        """Write an error inline, tagged like normal output."""
        message = Text(f"error: {error}", style="red")
        self.write(f"{self._prefix(tag)}{self._render(message)}\n")

    def newline(self) -> None:
        self.write("\n")
