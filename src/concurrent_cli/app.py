"""concurrent-cli 应用入口。

包含命令行解析、日志配置和主入口点。
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from . import __version__
from .config import Config, get_config
from .orchestrator import Orchestrator
from .output import OutputSink, create_console
from .runtime.process_runner import ProcessRunner

__all__ = ["build_parser", "parse_list", "run", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_list(value: str | None) -> list[str]:
    """解析逗号分隔列表，保留空项以维持下标对齐。

    Args:
        value: 例如 "web,,worker"

    Returns:
        例如 ["web", "", "worker"]；未提供时返回空列表
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",")]


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器。"""
    parser = argparse.ArgumentParser(
        prog="concurrent",
        description="Run commands concurrently and tail their output with labels.",
    )
    parser.add_argument(
        "commands",
        nargs="+",
        metavar="command",
        help="Commands to run concurrently (quote each one)",
    )
    parser.add_argument(
        "-c",
        "--colors",
        default="",
        help="Comma separated list of colors to identify the tails",
    )
    parser.add_argument(
        "-n",
        "--names",
        default="",
        help="Comma separated list of names to identify the tails",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(config: Config) -> None:
    """配置日志输出。

    默认输出到 stderr 且级别为 WARNING，避免干扰子进程输出；
    LOG_DEBUG 模式下以 DEBUG 级别输出到临时文件。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = config.log_level

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    log_handlers.append(handler)

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(level=logging.WARNING, handlers=log_handlers, force=True)
    # 只对 concurrent_cli 命名空间启用配置的级别
    logging.getLogger("concurrent_cli").setLevel(log_level)


async def run(
    commands: Sequence[str],
    names: Sequence[str],
    colors: Sequence[str],
    config: Config | None = None,
    sink: OutputSink | None = None,
) -> None:
    """运行所有命令直到全部结束或被取消。

    单个命令的失败只会输出到 sink，不影响退出码。
    """
    config = config or get_config()
    sink = sink or OutputSink(create_console(config.color_mode))
    runner = ProcessRunner(new_session=config.new_session, line_limit=config.line_limit)

    orchestrator = Orchestrator(commands, names, colors, sink=sink, runner=runner)
    summary = await orchestrator.run()
    logger.info(f"All commands finished: {summary}")


def main(argv: Sequence[str] | None = None) -> None:
    """主入口点。"""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting concurrent-cli: {config}")

    try:
        asyncio.run(
            run(
                args.commands,
                parse_list(args.names),
                parse_list(args.colors),
                config=config,
            )
        )
    except KeyboardInterrupt:
        # Ctrl+C outside the signal bridge (startup, teardown, Windows) is
        # still a normal shutdown.
        logger.debug("Interrupted outside the signal bridge")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=config.log_debug)
        sys.exit(1)


if __name__ == "__main__":
    main()
