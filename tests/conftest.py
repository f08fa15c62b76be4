"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import asyncio
import io
import shlex
import sys
from pathlib import Path

import pytest
from rich.console import Console

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用的假命令
FAKE_CLI_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_cli.py"

from concurrent_cli.output import OutputSink  # noqa: E402


def fake_cli(*args: str) -> str:
    """构造运行 fake_cli.py 的命令行字符串。"""
    parts = [sys.executable, str(FAKE_CLI_PATH), *args]
    return " ".join(shlex.quote(part) for part in parts)


class CapturedSink(OutputSink):
    """写入内存缓冲区的 OutputSink，宽度固定为 80 列、不着色。"""

    def __init__(self, width: int = 80) -> None:
        self.buffer = io.StringIO()
        super().__init__(Console(file=self.buffer, width=width, color_system=None))

    @property
    def text(self) -> str:
        return self.buffer.getvalue()

    def lines_for(self, prefix: str) -> list[str]:
        """某个标签前缀下的所有输出行（已去掉换行）。"""
        return [line for line in self.text.splitlines() if line.startswith(prefix)]

    async def wait_for(self, needle: str, timeout: float = 10.0) -> None:
        """等待输出中出现指定文本。"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while needle not in self.text:
            if loop.time() > deadline:
                raise AssertionError(f"{needle!r} not found in output:\n{self.text}")
            await asyncio.sleep(0.02)


@pytest.fixture
def sink() -> CapturedSink:
    """内存输出目标。"""
    return CapturedSink()


@pytest.fixture
def project_root() -> Path:
    """项目根目录。"""
    return PROJECT_ROOT
