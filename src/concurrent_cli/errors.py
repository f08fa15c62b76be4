"""concurrent-cli 异常类。

启动错误只影响单个命令；状态机误用属于编程错误。
"""

from __future__ import annotations

__all__ = [
    "ConcurrentError",
    "LaunchError",
    "InvalidTransitionError",
]


class ConcurrentError(Exception):
    """concurrent-cli 基础异常。"""
    pass


class LaunchError(ConcurrentError):
    """命令无法启动（空命令、引号不匹配、可执行文件不存在、无权限）。

    Attributes:
        command: 原始命令行
        reason: 失败原因
    """

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"{command!r}: {reason}")


class InvalidTransitionError(ConcurrentError, RuntimeError):
    """命令状态机出现非法（回退或重复终止）的状态转换。"""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"invalid state transition {current} -> {target}")
