"""Command orchestration and output multiplexing.

Per command the Orchestrator runs one task bundle:

    launch -> Line Reader       (stdout -> sink, "done" on EOF)
           -> Cancellation Watcher (shared cancel -> "exited" + kill)

and returns once every bundle has finished. One failing command never stops
its siblings; only the shared cancellation signal stops them all.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import anyio

from .context import RunContext
from .errors import InvalidTransitionError, LaunchError
from .output import OutputSink
from .runtime.process_runner import ProcessRunner, ProcessSpec
from .signal_manager import SignalBridge
from .tags import Tag, build_tags

__all__ = [
    "CommandEntry",
    "CommandState",
    "Orchestrator",
    "ReadOutcome",
    "RunSummary",
    "read_lines",
    "watch_cancellation",
]

logger = logging.getLogger(__name__)

DONE_MESSAGE = "done"


class CommandState(Enum):
    CREATED = "created"
    STARTED = "started"
    DONE = "done"
    KILLED = "killed"
    FAILED = "failed"


_TRANSITIONS: dict[CommandState, frozenset[CommandState]] = {
    CommandState.CREATED: frozenset({CommandState.STARTED, CommandState.FAILED}),
    CommandState.STARTED: frozenset({CommandState.DONE, CommandState.KILLED}),
    CommandState.DONE: frozenset(),
    CommandState.KILLED: frozenset(),
    CommandState.FAILED: frozenset(),
}


class ReadOutcome(Enum):
    """Why a Line Reader stopped."""

    EOF = "eof"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class CommandEntry:
    """One command of the run plus its runtime state.

    Attributes:
        index: Position in the command list
        command: Raw command line
        tag: Display tag
        process: Child process once started
        state: Lifecycle state
        cancelled: Set once, by the Watcher only, when the command is
            terminated by cancellation; read by the Line Reader at EOF
        output_closed: Set once, by the Line Reader only, after reporting
            "done"; read by the Watcher
    """

    index: int
    command: str
    tag: Tag
    process: asyncio.subprocess.Process | None = None
    state: CommandState = CommandState.CREATED
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    output_closed: bool = False

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def transition(self, target: CommandState) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: For backward or repeated terminal moves
        """
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        logger.debug(f"Command {self.index + 1} {self.state.value} -> {target.value}")
        self.state = target


@dataclass(frozen=True)
class RunSummary:
    """Terminal states of a finished run."""

    entries: tuple[CommandEntry, ...]

    def count(self, state: CommandState) -> int:
        return sum(1 for entry in self.entries if entry.state is state)

    @property
    def done(self) -> int:
        return self.count(CommandState.DONE)

    @property
    def killed(self) -> int:
        return self.count(CommandState.KILLED)

    @property
    def failed(self) -> int:
        return self.count(CommandState.FAILED)

    def __repr__(self) -> str:
        return (
            f"RunSummary(commands={len(self.entries)}, "
            f"done={self.done}, killed={self.killed}, failed={self.failed})"
        )


async def read_lines(
    entry: CommandEntry,
    context: RunContext,
    sink: OutputSink,
) -> ReadOutcome:
    """Forward a child's stdout to the sink line by line.

    Each read races the shared cancellation signal; if cancellation wins the
    loop stops without reading further. At EOF "done" is reported unless the
    Watcher already reported the command as exited.

    Args:
        entry: Started command
        context: Shared run context
        sink: Output sink

    Returns:
        Why reading stopped
    """
    assert entry.process is not None and entry.process.stdout is not None
    stdout = entry.process.stdout

    cancel_wait = asyncio.create_task(context.wait())
    try:
        while True:
            read_task = asyncio.create_task(stdout.readline())
            done, _ = await asyncio.wait(
                [read_task, cancel_wait],
                return_when=asyncio.FIRST_COMPLETED,
            )

            if cancel_wait in done:
                if not read_task.done():
                    read_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await read_task
                return ReadOutcome.CANCELLED

            try:
                line = read_task.result()
            except Exception as e:
                # e.g. a line longer than the stream limit
                logger.warning(f"Read error on command {entry.index + 1}: {e}")
                sink.error(entry.tag, e)
                return ReadOutcome.ERROR

            if not line:
                # The Watcher sets `cancelled` before printing "exited"; seeing
                # it here means that message was already written.
                if not entry.cancelled.is_set():
                    entry.output_closed = True
                    sink.status(entry.tag, DONE_MESSAGE)
                return ReadOutcome.EOF

            sink.line(entry.tag, line)
    finally:
        if not cancel_wait.done():
            cancel_wait.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cancel_wait


async def watch_cancellation(
    entry: CommandEntry,
    context: RunContext,
    sink: OutputSink,
    runner: ProcessRunner,
) -> None:
    """Kill a command's child once the shared cancellation signal fires."""
    assert entry.process is not None

    await context.wait()

    if entry.output_closed:
        # "done" was already reported; only make sure nothing is left behind.
        await runner.kill(entry.process)
        return

    entry.cancelled.set()
    sink.status(entry.tag, f"{entry.command} exited")
    await runner.kill(entry.process)


class Orchestrator:
    """Runs every command concurrently and waits for all of them.

    Example:
        orchestrator = Orchestrator(
            ["npm run watch", "tail -f app.log"],
            names=["web", "log"],
            colors=["green", "blue"],
            sink=OutputSink(),
        )
        summary = await orchestrator.run()

    Attributes:
        commands: Raw command lines
        names: Optional names, index-aligned
        colors: Optional colors, index-aligned
        sink: Shared output sink
        runner: Process launcher
        context: Shared run context
        handle_signals: Whether SIGINT/SIGTERM are bridged to cancellation
    """

    def __init__(
        self,
        commands: Sequence[str],
        names: Sequence[str] | None = None,
        colors: Sequence[str] | None = None,
        *,
        sink: OutputSink,
        runner: ProcessRunner | None = None,
        context: RunContext | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.commands = list(commands)
        self.names = list(names or ())
        self.colors = list(colors or ())
        self.sink = sink
        self.runner = runner if runner is not None else ProcessRunner()
        self.context = context if context is not None else RunContext()
        self.handle_signals = handle_signals

        tags, self.tag_width = build_tags(len(self.commands), self.names, self.colors)
        self.entries = [
            CommandEntry(index=i, command=command, tag=tag)
            for i, (command, tag) in enumerate(zip(self.commands, tags))
        ]
        self.columns = 1

    async def run(self) -> RunSummary:
        """Run all commands and block until every one is terminal.

        Returns:
            Summary of terminal states
        """
        self.columns = max(self.sink.width - self.tag_width, 1)
        logger.debug(
            f"Running {len(self.entries)} command(s) "
            f"(tag_width={self.tag_width}, columns={self.columns})"
        )

        bridge = (
            SignalBridge(self.context, self.sink)
            if self.handle_signals
            else contextlib.nullcontext()
        )
        async with bridge:
            async with anyio.create_task_group() as tg:
                for entry in self.entries:
                    tg.start_soon(self._run_entry, entry, name=f"command-{entry.index + 1}")

        summary = RunSummary(tuple(self.entries))
        logger.debug(f"Run finished: {summary}")
        return summary

    async def _run_entry(self, entry: CommandEntry) -> None:
        """Task bundle of one command; never raises into the task group."""
        try:
            await self._launch_and_follow(entry)
        except Exception as e:
            logger.exception(f"Unexpected error in command {entry.index + 1}")
            self.sink.error(entry.tag, e)
        finally:
            await self._cleanup(entry)

    async def _launch_and_follow(self, entry: CommandEntry) -> None:
        try:
            spec = ProcessSpec.from_command(entry.command, self.columns)
            entry.process = await self.runner.start(spec)
        except LaunchError as e:
            logger.warning(f"Failed to launch command {entry.index + 1}: {e}")
            self.sink.error(entry.tag, e)
            entry.transition(CommandState.FAILED)
            return

        entry.transition(CommandState.STARTED)
        self.context.command_started()

        watcher = asyncio.create_task(
            watch_cancellation(entry, self.context, self.sink, self.runner),
            name=f"watcher-{entry.index + 1}",
        )
        try:
            outcome = await read_lines(entry, self.context, self.sink)

            if outcome is ReadOutcome.CANCELLED:
                await watcher
            elif outcome is ReadOutcome.ERROR:
                # Nobody reads the pipe any more; the child would block on it.
                await self.runner.kill(entry.process)

            await entry.process.wait()
        finally:
            if not watcher.done():
                watcher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watcher

        if entry.cancelled.is_set() or outcome is ReadOutcome.ERROR:
            entry.transition(CommandState.KILLED)
        else:
            entry.transition(CommandState.DONE)
        self.context.command_finished()

        logger.debug(
            f"Command {entry.index + 1} finished "
            f"state={entry.state.value} returncode={entry.process.returncode}"
        )

    async def _cleanup(self, entry: CommandEntry) -> None:
        """Settle an entry left behind by an unexpected error or outer cancel.

        Kills a child that is still running and moves the entry to a
        terminal state so the run never ends with a command in flight.
        """
        process = entry.process
        if process is not None and process.returncode is None:
            with anyio.CancelScope(shield=True):
                await self.runner.kill(process)

        if entry.state is CommandState.CREATED:
            entry.transition(CommandState.FAILED)
        elif entry.state is CommandState.STARTED:
            entry.transition(CommandState.KILLED)
            self.context.command_finished()
