"""Interactive terminal sessions driven by an asyncio event loop.

Lines typed on stdin play the role of the editor surface. Timers come from
:class:`abbey.timers.SchedulerTimers`, so autosave and flow ticks fire on
the same loop that handles input.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from pathlib import Path
from typing import Callable, TextIO

import typer
from loguru import logger

from abbey.config import AppConfig
from abbey.flow import FlowSession, FlowTick
from abbey.storage import Flow
from abbey.timers import SchedulerTimers
from abbey.workspace import Notification, Workspace

Echo = Callable[[str], None]

_WRITE_HELP = "Type to append lines. Commands: :title <text>, :note <text>, :save, :q"
_FLOW_HELP = "Write freely. Commands: :pause, :end"


class LineReader:
    """Pump lines from a blocking stream into the event loop.

    The reader runs on a daemon thread so a pending ``readline`` never
    holds up loop shutdown.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._pump, args=(loop,), daemon=True, name="abbey-stdin")
        self._thread.start()

    async def readline(self) -> str | None:
        """Next line without its newline, or ``None`` at end of input."""
        return await self._queue.get()

    def _pump(self, loop: asyncio.AbstractEventLoop) -> None:
        for line in iter(self._stream.readline, ""):
            if not self._deliver(loop, line.rstrip("\n")):
                return
        self._deliver(loop, None)

    def _deliver(self, loop: asyncio.AbstractEventLoop, line: str | None) -> bool:
        # the session may finish while a line is still being read
        if loop.is_closed():
            return False
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, line)
        except RuntimeError:
            logger.debug("Input loop closed; dropping remaining stdin lines")
            return False
        return True


def _echo_notification(notification: Notification) -> None:
    typer.echo(notification.message, err=notification.is_error)


def run_write(
    config: AppConfig,
    composition_id: str | None,
    *,
    home: Path | None = None,
    stream: TextIO | None = None,
    echo: Echo = typer.echo,
) -> bool:
    """Edit one composition line by line until ``:q`` or end of input."""
    return asyncio.run(_write_session(config, composition_id, home=home, stream=stream or sys.stdin, echo=echo))


async def _write_session(
    config: AppConfig,
    composition_id: str | None,
    *,
    home: Path | None,
    stream: TextIO,
    echo: Echo,
) -> bool:
    timers = SchedulerTimers()
    workspace = Workspace.open(config, timers, home=home, on_notify=_echo_notification)
    timers.start()
    try:
        if composition_id is not None:
            if not workspace.open_composition(composition_id):
                echo(f"Unknown composition '{composition_id}'")
                return False
        elif workspace.active is None:
            workspace.new_composition()

        active = workspace.active
        assert active is not None
        echo(f"Editing '{active.display_title}' ({active.word_count} words)")
        echo(_WRITE_HELP)

        reader = LineReader(stream)
        reader.start()
        while (line := await reader.readline()) is not None:
            if line == ":q":
                break
            if line == ":save":
                path = workspace.save()
                echo(f"Saved{f' to {path}' if path else ''}")
            elif line.startswith(":title "):
                workspace.edit(title=line.removeprefix(":title ").strip())
            elif line.startswith(":note "):
                workspace.add_note(line.removeprefix(":note ").strip())
            else:
                current = workspace.active
                content = current.content if current is not None else ""
                workspace.edit(content=f"{content}\n{line}" if content else line)
        return True
    finally:
        workspace.close()
        timers.shutdown()


def run_flow(
    config: AppConfig,
    minutes: int,
    *,
    home: Path | None = None,
    stream: TextIO | None = None,
    echo: Echo = typer.echo,
) -> Flow | None:
    """Run a timed session on stdin; returns the saved flow, if it completed."""
    return asyncio.run(_flow_session(config, minutes, home=home, stream=stream or sys.stdin, echo=echo))


async def _flow_session(
    config: AppConfig,
    minutes: int,
    *,
    home: Path | None,
    stream: TextIO,
    echo: Echo,
) -> Flow | None:
    timers = SchedulerTimers()
    workspace = Workspace.open(config, timers, home=home, on_notify=_echo_notification)
    timers.start()
    finished: asyncio.Future[Flow] = asyncio.get_running_loop().create_future()
    try:
        def _on_ended(flow: Flow) -> None:
            if not finished.done():
                finished.set_result(flow)

        session = workspace.start_flow(minutes, on_ended=_on_ended)
        session.ticks.connect(_tick_printer(echo))
        echo(f"Flow started: {minutes} minute(s). {_FLOW_HELP}")

        reader = LineReader(stream)
        reader.start()
        lines: list[str] = []
        while not finished.done():
            next_line = asyncio.ensure_future(reader.readline())
            await asyncio.wait({next_line, finished}, return_when=asyncio.FIRST_COMPLETED)
            if finished.done():
                next_line.cancel()
                break
            line = next_line.result()
            if line is None or line == ":end":
                _end(session)
                break
            if line == ":pause":
                paused = session.toggle_pause()
                echo("Paused" if paused else "Resumed")
                continue
            lines.append(line)
            session.update_text("\n".join(lines))
        return finished.result() if finished.done() else None
    finally:
        workspace.close()
        timers.shutdown()


def _end(session: FlowSession) -> None:
    if session.end() is None:
        logger.debug("Flow session had already ended")


def _tick_printer(echo: Echo) -> Callable[[FlowTick], None]:
    def _print(tick: FlowTick) -> None:
        # one line per minute, then every second of the final warning window
        if tick.ending or tick.remaining_seconds % 60 == 0:
            echo(f"[{tick.label}] {tick.word_count} words")

    return _print


__all__ = ["LineReader", "run_flow", "run_write"]
