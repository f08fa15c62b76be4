"""运行上下文。

一次运行只有一个取消信号：所有命令的 Cancellation Watcher 共同等待它，
触发后广播给所有等待者，且只生效一次。
"""

from __future__ import annotations

import asyncio
import logging

__all__ = ["RunContext"]

logger = logging.getLogger(__name__)


class RunContext:
    """一次运行共享的取消信号与运行计数。

    线程安全：所有操作由调用方保证在同一个事件循环中调用。

    Example:
        ```python
        context = RunContext()

        # 在 watcher 中等待
        await context.wait()

        # 在信号处理器中触发（幂等）
        context.cancel()
        ```
    """

    def __init__(self) -> None:
        self._cancel_event = asyncio.Event()
        self._running = 0

    @property
    def is_cancelled(self) -> bool:
        """是否已触发取消。"""
        return self._cancel_event.is_set()

    @property
    def running(self) -> int:
        """仍在运行的命令数量。"""
        return self._running

    def cancel(self) -> bool:
        """触发取消信号。

        Returns:
            首次触发返回 True，重复调用返回 False
        """
        if self._cancel_event.is_set():
            return False
        self._cancel_event.set()
        logger.debug(f"Cancellation triggered with {self._running} command(s) running")
        return True

    async def wait(self) -> None:
        """等待取消信号。"""
        await self._cancel_event.wait()

    def command_started(self) -> None:
        self._running += 1

    def command_finished(self) -> None:
        self._running = max(0, self._running - 1)
