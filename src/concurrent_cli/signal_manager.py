"""信号管理模块。

将 OS 信号转换为运行级别的取消操作：
- SIGINT / SIGTERM: 输出一个空行分隔，然后触发共享取消信号
- 之后收到的信号一律忽略，直到运行结束恢复原始处理器

SignalBridge 只负责触发取消，不等待子进程结束；
结束子进程是每个命令的 Cancellation Watcher 的职责。
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from .context import RunContext
from .output import OutputSink

__all__ = ["SignalBridge"]

logger = logging.getLogger(__name__)


class SignalBridge:
    """信号桥接器。

    在运行期间接管 SIGINT 和 SIGTERM，首次收到时触发 RunContext 的取消信号。

    Example:
        ```python
        context = RunContext()
        async with SignalBridge(context, sink):
            # 运行所有命令...
            await run_all()
        ```

    Attributes:
        context: 运行上下文
        sink: 输出目标
    """

    def __init__(self, context: RunContext, sink: OutputSink) -> None:
        """初始化信号桥接器。

        Args:
            context: 运行上下文
            sink: 输出目标（用于输出分隔空行）
        """
        self.context = context
        self.sink = sink

        # 内部状态
        self._fired: bool = False
        self._running: bool = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._original_sigint_handler: Optional[signal.Handlers] = None

    @property
    def fired(self) -> bool:
        """是否已处理过信号。"""
        return self._fired

    async def start(self) -> None:
        """启动信号监听。

        必须在 asyncio 事件循环中调用。
        """
        if self._running:
            logger.warning("SignalBridge already running")
            return

        self._loop = asyncio.get_running_loop()
        self._running = True

        if sys.platform != "win32":
            self._loop.add_signal_handler(signal.SIGINT, self._handle_signal, signal.SIGINT)
            self._loop.add_signal_handler(signal.SIGTERM, self._handle_signal, signal.SIGTERM)
            logger.debug("Signal handlers installed (SIGINT, SIGTERM)")
        else:
            # Windows: 使用 signal.signal() 设置处理器，并切回事件循环执行
            loop = self._loop
            self._original_sigint_handler = signal.signal(
                signal.SIGINT,
                lambda sig, frame: loop.call_soon_threadsafe(self._handle_signal, sig),
            )
            logger.debug("SIGINT handler installed on Windows")

    async def stop(self) -> None:
        """停止信号监听，恢复原始信号处理器。"""
        if not self._running:
            return

        self._running = False

        if sys.platform != "win32" and self._loop:
            try:
                self._loop.remove_signal_handler(signal.SIGINT)
                self._loop.remove_signal_handler(signal.SIGTERM)
            except Exception as e:
                logger.debug(f"Error removing signal handlers: {e}")
        elif sys.platform == "win32" and self._original_sigint_handler is not None:
            try:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            except Exception as e:
                logger.debug(f"Error restoring SIGINT handler: {e}")

        logger.debug("Signal handlers removed")

    async def __aenter__(self) -> "SignalBridge":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _handle_signal(self, signum: int) -> None:
        """处理 SIGINT / SIGTERM。

        只有第一次信号生效：输出空行并触发取消。
        """
        name = signal.Signals(signum).name

        if self._fired:
            logger.debug(f"{name} received during shutdown, ignoring")
            return

        self._fired = True
        logger.info(f"{name} received, cancelling {self.context.running} command(s)")

        self.sink.newline()
        self.context.cancel()
