"""concurrent-cli 环境变量配置管理。

环境变量:
    CONCURRENT_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (DEBUG 日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    CONCURRENT_LOG_LEVEL: stderr 日志级别
        - DEBUG/INFO/WARNING/ERROR/CRITICAL
        - 默认 WARNING，避免干扰子进程输出

    CONCURRENT_COLOR: 标签着色模式
        - auto = 终端检测 (默认，遵循 NO_COLOR)
        - always = 强制着色
        - never = 不着色

    CONCURRENT_NEW_SESSION: 子进程是否放入独立会话/进程组
        - true/1/yes = 是 (默认，Ctrl+C 只送达父进程，由父进程统一结束子进程)
        - false/0/no = 否 (子进程与父进程共享前台进程组)

    CONCURRENT_LINE_LIMIT: 单行读取缓冲上限（字节）
        - 默认 1 MiB
        - 限制在 64 KiB - 64 MiB 范围
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = ["Config", "ColorMode", "load_config", "get_config", "reload_config"]

DEFAULT_LINE_LIMIT = 1024 * 1024
MIN_LINE_LIMIT = 64 * 1024
MAX_LINE_LIMIT = 64 * 1024 * 1024


class ColorMode(Enum):
    """标签着色模式。"""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def from_string(cls, value: str) -> "ColorMode":
        """从字符串解析模式。

        Args:
            value: 模式字符串 (auto/always/never)

        Returns:
            对应的 ColorMode 枚举值，无效值返回 AUTO
        """
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.AUTO


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_log_level(value: str | None) -> int:
    """解析日志级别，无效值返回 WARNING。"""
    if not value:
        return logging.WARNING
    level = logging.getLevelName(value.strip().upper())
    if isinstance(level, int):
        return level
    return logging.WARNING


def _parse_line_limit(value: str | None) -> int:
    """解析行缓冲上限环境变量。"""
    if not value:
        return DEFAULT_LINE_LIMIT
    try:
        limit = int(value)
    except ValueError:
        return DEFAULT_LINE_LIMIT
    return max(MIN_LINE_LIMIT, min(limit, MAX_LINE_LIMIT))


@dataclass
class Config:
    """concurrent-cli 配置。

    Attributes:
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        log_level: stderr 日志级别
        color_mode: 标签着色模式
        new_session: 子进程是否使用独立会话/进程组
        line_limit: 单行读取缓冲上限（字节）
    """

    log_debug: bool = False
    log_file: str | None = None
    log_level: int = logging.WARNING
    color_mode: ColorMode = ColorMode.AUTO
    new_session: bool = True
    line_limit: int = DEFAULT_LINE_LIMIT

    def __repr__(self) -> str:
        return (
            f"Config(log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"log_level={logging.getLevelName(self.log_level)}, "
            f"color_mode={self.color_mode.value}, "
            f"new_session={self.new_session}, "
            f"line_limit={self.line_limit})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "concurrent-cli"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"concurrent_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CONCURRENT_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        log_debug=log_debug,
        log_file=log_file,
        log_level=_parse_log_level(os.environ.get("CONCURRENT_LOG_LEVEL")),
        color_mode=ColorMode.from_string(os.environ.get("CONCURRENT_COLOR", "")),
        new_session=_parse_bool(os.environ.get("CONCURRENT_NEW_SESSION"), default=True),
        line_limit=_parse_line_limit(os.environ.get("CONCURRENT_LINE_LIMIT")),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
