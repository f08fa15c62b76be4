"""OutputSink tests.

Test coverage:
- Tag prefixing of child lines
- Status and error messages
- Color rendering of tags
- Line-granular writes
"""

from __future__ import annotations

import io
import re
import threading

from rich.console import Console

from concurrent_cli.config import ColorMode
from concurrent_cli.output import OutputSink, create_console
from concurrent_cli.tags import Tag, build_tags

from conftest import CapturedSink

TAG = Tag(name="web", color=None, width=8)

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


class TestLines:
    """Test child output lines."""

    def test_line_is_prefixed(self, sink: CapturedSink):
        sink.line(TAG, b"listening on :8080\n")
        assert sink.text == "[web]   listening on :8080\n"

    def test_line_is_verbatim(self, sink: CapturedSink):
        """Markup-like text and escape codes in child output are not interpreted."""
        raw = "[bold]not markup[/bold] \x1b[31mred\x1b[0m\n"
        sink.line(TAG, raw.encode())
        assert sink.text == "[web]   " + raw

    def test_partial_line_gets_newline(self, sink: CapturedSink):
        sink.line(TAG, b"no newline")
        assert sink.text == "[web]   no newline\n"

    def test_invalid_utf8_replaced(self, sink: CapturedSink):
        sink.line(TAG, b"bad \xff byte\n")
        assert sink.text == "[web]   bad � byte\n"


class TestMessages:
    """Test lifecycle and error messages."""

    def test_status(self, sink: CapturedSink):
        sink.status(TAG, "done")
        assert sink.text == "[web]   done\n"

    def test_error_with_tag(self, sink: CapturedSink):
        sink.error(TAG, ValueError("boom"))
        assert sink.text == "[web]   error: boom\n"

    def test_error_without_tag(self, sink: CapturedSink):
        sink.error(None, "boom")
        assert sink.text == "error: boom\n"

    def test_newline(self, sink: CapturedSink):
        sink.newline()
        assert sink.text == "\n"


class TestColor:
    """Test tag coloring."""

    def test_colored_tag_rendered_with_escape_codes(self):
        buffer = io.StringIO()
        sink = OutputSink(Console(file=buffer, width=80, force_terminal=True, color_system="standard"))

        sink.status(Tag(name="web", color="red", width=6), "done")

        text = buffer.getvalue()
        assert "\x1b[" in text
        assert "[web]" in text
        assert text.endswith(" done\n")

    def test_never_mode_has_no_escape_codes(self):
        buffer = io.StringIO()
        sink = OutputSink(create_console(ColorMode.NEVER, file=buffer))

        sink.status(Tag(name="web", color="red", width=6), "done")

        assert buffer.getvalue() == "[web] done\n"

    def test_width_from_console(self):
        assert CapturedSink(width=120).width == 120


class TestTagWidth:
    """Test that every written prefix has the shared tag width."""

    NAMES = ["a", "database", ":smile:", "[bold]x[/bold]", "", "https://example.com"]
    COLORS = ["red", "bold blue", "", "green", "#ff8800", "cyan"]

    def write_statuses(self, console: Console) -> tuple[list[str], int]:
        tags, width = build_tags(len(self.NAMES), self.NAMES, self.COLORS)
        sink = OutputSink(console)
        for tag in tags:
            sink.status(tag, "done")
        return console.file.getvalue().splitlines(), width

    def test_plain_prefixes(self):
        lines, width = self.write_statuses(Console(file=io.StringIO(), width=80, color_system=None))

        assert lines[2] == "[:smile:]" + " " * (width - 9) + "done"
        for line in lines:
            assert line.index("done") == width

    def test_colored_prefixes(self):
        console = Console(
            file=io.StringIO(), width=80, force_terminal=True, color_system="truecolor"
        )
        lines, width = self.write_statuses(console)

        assert any("\x1b[" in line for line in lines)
        for line in lines:
            visible = ANSI_ESCAPE.sub("", line)
            assert visible.index("done") == width
            assert visible.endswith(" done")

    def test_default_console_does_not_interpret_names(self):
        """Consoles not built by create_console still leave names untouched."""
        console = Console(file=io.StringIO(), width=80, color_system=None, emoji=True)
        lines, width = self.write_statuses(console)

        assert "[:smile:]" in lines[2]
        assert "[[bold]x[/bold]]" in lines[3]
        assert all(line.index("done") == width for line in lines)


class TestConcurrentWrites:
    """Test that lines never interleave mid-line."""

    def test_threads_write_whole_lines(self, sink: CapturedSink):
        tags = [Tag(name=str(i), color=None, width=4) for i in range(4)]
        payload = b"x" * 500 + b"\n"

        def writer(tag: Tag) -> None:
            for _ in range(200):
                sink.line(tag, payload)

        threads = [threading.Thread(target=writer, args=(tag,)) for tag in tags]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        lines = sink.text.splitlines()
        assert len(lines) == 800
        for line in lines:
            assert line[:4] in {"[0] ", "[1] ", "[2] ", "[3] "}
            assert line[4:] == "x" * 500
