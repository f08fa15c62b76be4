"""Process launcher with subprocess isolation and immediate termination.

concurrent-cli runtime module

This module provides:
- Command tokenization (POSIX shell quoting, no shell expansion)
- Explicit child environment construction (copy plus overrides)
- Cross-platform subprocess isolation (new session/process group)
- Forced termination of the whole process group, without grace period

Key design points:
- POSIX: start_new_session=True so the terminal's SIGINT only reaches the
  parent, which then kills every child itself
- Windows: CREATE_NEW_PROCESS_GROUP for the same isolation
- stdout is piped for tagging; stderr is inherited unlabeled
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import DEFAULT_LINE_LIMIT
from ..errors import LaunchError

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "build_child_env",
    "split_command",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Environment overrides handed to every child
FORCE_COLOR_ENV = "FORCE_COLOR"
COLUMNS_ENV = "COLUMNS"


def _strip_quotes(arg: str) -> str:
    if len(arg) >= 2 and arg[0] == arg[-1] and arg[0] in "\"'":
        return arg[1:-1]
    return arg


def split_command(command: str) -> list[str]:
    """Tokenize a command line into argv.

    Args:
        command: Raw command line, e.g. ``tail -f "my log.txt"``

    Returns:
        Argument vector, program first

    Raises:
        LaunchError: If the command is empty or its quoting is unbalanced
    """
    try:
        argv = shlex.split(command, posix=not IS_WINDOWS)
    except ValueError as e:
        raise LaunchError(command, str(e)) from e

    if IS_WINDOWS:
        # Non-POSIX mode keeps the quotes around a token.
        argv = [_strip_quotes(arg) for arg in argv]

    if not argv:
        raise LaunchError(command, "empty command")
    return argv


def build_child_env(
    columns: int,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build a child environment without touching the parent's.

    Args:
        columns: Output width reserved for the child
        base: Environment to copy (default: os.environ)

    Returns:
        New dict with FORCE_COLOR and COLUMNS overridden
    """
    env = dict(os.environ if base is None else base)
    env[FORCE_COLOR_ENV] = "1"
    env[COLUMNS_ENV] = str(columns)
    return env


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        env: Environment variables (None = inherit parent)
        cwd: Working directory (None = inherit parent)
    """

    argv: list[str]
    env: Mapping[str, str] | None = None
    cwd: Path | None = None

    @classmethod
    def from_command(cls, command: str, columns: int, **kwargs: Any) -> "ProcessSpec":
        """Build a spec from a raw command line.

        Raises:
            LaunchError: If the command cannot be tokenized
        """
        return cls(argv=split_command(command), env=build_child_env(columns), **kwargs)


@dataclass
class ProcessRunner:
    """Cross-platform process launcher with isolation and forced kill.

    Example:
        runner = ProcessRunner()
        process = await runner.start(ProcessSpec.from_command("tail -f app.log", 80))
        line = await process.stdout.readline()
        await runner.kill(process)
    """

    new_session: bool = True
    line_limit: int = DEFAULT_LINE_LIMIT

    async def start(self, spec: ProcessSpec) -> asyncio.subprocess.Process:
        """Start a subprocess with stdout captured.

        Args:
            spec: Process specification

        Returns:
            The running process; its stdout is an asyncio.StreamReader

        Raises:
            LaunchError: If the executable cannot be started
        """
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            # stdin is not forwarded: in a separate session the child cannot
            # read the terminal anyway.
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                limit=self.line_limit,
                **kwargs,
            )
        except OSError as e:
            raise LaunchError(shlex.join(spec.argv), e.strerror or str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={spec.argv[0]}")
        return process

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Process specification

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)
        if spec.cwd is not None:
            kwargs["cwd"] = spec.cwd

        if not self.new_session:
            return kwargs

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    async def kill(self, process: asyncio.subprocess.Process) -> bool:
        """Kill a subprocess (and its process group) immediately.

        Killing a process that already exited is not an error.

        Args:
            process: The subprocess to kill

        Returns:
            True if a kill signal was delivered
        """
        pid = process.pid

        if process.returncode is not None and not self.new_session:
            logger.debug(f"Subprocess already exited pid={pid}")
            return False

        try:
            if self.new_session and not IS_WINDOWS:
                self._posix_kill_group(process)
            else:
                process.kill()
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
            return False

        logger.debug(f"Killed subprocess pid={pid}")
        return True

    def _posix_kill_group(self, process: asyncio.subprocess.Process) -> None:
        """Send SIGKILL to the process group on POSIX systems.

        The child is its own group leader (start_new_session), so the group
        id equals its pid; grandchildren left in the group are killed too.

        Raises:
            ProcessLookupError: If no process of the group is left
        """
        try:
            os.killpg(process.pid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={process.pid}")
        except PermissionError as e:
            # pid reused by a process outside our group
            logger.debug(f"killpg failed, falling back to kill: {e}")
            if process.returncode is not None:
                raise ProcessLookupError(process.pid) from e
            process.kill()
