"""Fixed-width command labels.

Every output line is prefixed with a tag such as ``[web] `` so lines from
different commands can be told apart. All tags of one run share the same
width: ``max(3 + len(name))``, i.e. the brackets plus one separating space.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rich.errors import StyleSyntaxError
from rich.style import Style
from rich.text import Text

__all__ = [
    "Tag",
    "build_tags",
    "compute_tag_width",
    "resolve_colors",
    "resolve_names",
]

logger = logging.getLogger(__name__)

# "[" + "]" + " "
TAG_DECORATION = 3


@dataclass(frozen=True)
class Tag:
    """Display label for one command.

    Attributes:
        name: Display name (explicit name or 1-based index)
        color: rich style string, or None for no color
        width: Shared tag width of the run
    """

    name: str
    color: str | None
    width: int

    @property
    def label(self) -> str:
        """Bracketed name right-padded so that ``prefix`` has ``width`` chars."""
        return f"[{self.name}]".ljust(self.width - 1)

    @property
    def prefix(self) -> str:
        """Plain text written before every line of this command."""
        return self.label + " "

    def render(self) -> Text:
        """Styled label for the console; the name is never parsed as markup."""
        return Text(self.label, style=self.color or "", no_wrap=True, end="")


def resolve_names(count: int, names: Sequence[str] | None) -> list[str]:
    """Align names to commands, falling back to the 1-based index."""
    names = names or ()
    resolved = []
    for i in range(count):
        name = names[i].strip() if i < len(names) else ""
        resolved.append(name or str(i + 1))
    return resolved


def _is_valid_style(color: str) -> bool:
    try:
        Style.parse(color)
    except StyleSyntaxError:
        return False
    return True


def resolve_colors(count: int, colors: Sequence[str] | None) -> list[str | None]:
    """Align colors to commands.

    Missing, empty and unparseable entries resolve to None, which means the
    tag is printed without any styling.
    """
    colors = colors or ()
    resolved: list[str | None] = []
    for i in range(count):
        color = colors[i].strip() if i < len(colors) else ""
        if color and not _is_valid_style(color):
            logger.warning(f"Ignoring invalid color {color!r} for command {i + 1}")
            color = ""
        resolved.append(color or None)
    return resolved


def compute_tag_width(names: Sequence[str]) -> int:
    return max((TAG_DECORATION + len(name) for name in names), default=0)


def build_tags(
    count: int,
    names: Sequence[str] | None = None,
    colors: Sequence[str] | None = None,
) -> tuple[list[Tag], int]:
    """Build the tags of a run.

    Args:
        count: Number of commands
        names: Optional names, index-aligned with the commands
        colors: Optional colors, index-aligned with the commands

    Returns:
        Tuple of (tags, tag_width)
    """
    resolved_names = resolve_names(count, names)
    resolved_colors = resolve_colors(count, colors)
    width = compute_tag_width(resolved_names)

    tags = [
        Tag(name=name, color=color, width=width)
        for name, color in zip(resolved_names, resolved_colors)
    ]
    return tags, width
