"""Child process ownership for kilo runs.

A ProcessHandle owns one ``kilo run`` child: its stdout is pumped through a
LineFramer by a single reader task, so lines reach the line callback
strictly in the order they were written; stderr is logged and otherwise
ignored. When stdout closes, the framer's tail is flushed, the process is
reaped, and the exit callback runs last.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Awaitable, Callable, Mapping, Sequence

from kiloacp.bridge.errors import KiloSpawnError
from kiloacp.bridge.framing import CONTENT_ENCODING, LineFramer
from kiloacp.logging import get_logger

log = get_logger("bridge.process")

LineCallback = Callable[[str], Awaitable[None]]
ExitCallback = Callable[[int | None], Awaitable[None]]
EofCallback = Callable[[], None]

READ_CHUNK_SIZE = 64 * 1024


class ProcessHandle:
    """A running kilo child and the tasks reading its output."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        on_line: LineCallback,
        on_exit: ExitCallback,
        on_eof: EofCallback | None = None,
        terminate_timeout: float | None = 5.0,
    ) -> None:
        self._process = process
        self._on_line = on_line
        self._on_exit = on_exit
        self._on_eof = on_eof
        self._terminate_timeout = terminate_timeout
        self._framer = LineFramer()
        self._kill_timer: asyncio.TimerHandle | None = None
        self._stderr_task = asyncio.create_task(self._pump_stderr())
        self._reader_task = asyncio.create_task(self._pump_stdout())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def running(self) -> bool:
        return not self._reader_task.done()

    def terminate(self, sig: int = signal.SIGTERM) -> None:
        """Ask the child to stop. Fire-and-forget.

        If the child is still alive after ``terminate_timeout`` seconds it is
        killed outright.
        """
        if self._process.returncode is not None:
            return
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            return
        log.debug("Sent signal %s to kilo pid %d", sig, self.pid)
        if self._kill_timer is None and self._terminate_timeout is not None:
            loop = asyncio.get_running_loop()
            self._kill_timer = loop.call_later(self._terminate_timeout, self._force_kill)

    def _force_kill(self) -> None:
        if self._process.returncode is not None:
            return
        log.warning("kilo pid %d ignored SIGTERM, killing", self.pid)
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    async def wait(self) -> int | None:
        """Wait until output is drained and the exit callback has run."""
        await asyncio.shield(self._reader_task)
        return self._process.returncode

    async def _pump_stdout(self) -> None:
        try:
            await self._read_lines()
        except Exception:
            log.exception("Failed reading kilo output (pid %d)", self.pid)
            self.terminate()

        returncode = await self._process.wait()
        await self._stderr_task
        if self._kill_timer is not None:
            self._kill_timer.cancel()
        log.debug("kilo pid %d exited with %s", self.pid, returncode)
        await self._on_exit(returncode)

    async def _read_lines(self) -> None:
        stdout = self._process.stdout
        assert stdout is not None
        while chunk := await stdout.read(READ_CHUNK_SIZE):
            for line in self._framer.feed(chunk):
                await self._on_line(line)

        if self._on_eof is not None:
            self._on_eof()
        tail = self._framer.flush()
        if tail is not None:
            await self._on_line(tail)

    async def _pump_stderr(self) -> None:
        stderr = self._process.stderr
        assert stderr is not None
        while chunk := await stderr.read(READ_CHUNK_SIZE):
            text = chunk.decode(CONTENT_ENCODING, errors="replace").rstrip()
            if text:
                log.warning("[kilo stderr] %s", text)


class ProcessRunner:
    """Spawn kilo children for prompts.

    Args:
        binary: kilo executable name or path.
        env: Overrides applied on top of the parent environment.
        extra_args: Inserted between ``run --format json`` and the prompt.
        terminate_timeout: Seconds between SIGTERM and SIGKILL.
    """

    def __init__(
        self,
        binary: str = "kilo",
        env: Mapping[str, str] | None = None,
        extra_args: Sequence[str] = (),
        terminate_timeout: float | None = 5.0,
    ) -> None:
        self._binary = binary
        self._env = dict(env or {})
        self._extra_args = list(extra_args)
        self._terminate_timeout = terminate_timeout

    @property
    def binary(self) -> str:
        return self._binary

    def build_args(self, prompt_text: str) -> list[str]:
        """Command line for one prompt; the prompt is passed as an argument."""
        return [self._binary, "run", "--format", "json", *self._extra_args, prompt_text]

    def build_env(self) -> dict[str, str]:
        process_env = os.environ.copy()
        process_env.update(self._env)
        return process_env

    async def spawn(
        self,
        args: Sequence[str],
        *,
        cwd: str,
        on_line: LineCallback,
        on_exit: ExitCallback,
        on_eof: EofCallback | None = None,
    ) -> ProcessHandle:
        """Start a child and begin pumping its output.

        Raises:
            KiloSpawnError: If the executable is missing or cannot be run.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=self.build_env(),
            )
        except FileNotFoundError as e:
            raise KiloSpawnError(f"kilo executable not found: {args[0]}") from e
        except PermissionError as e:
            raise KiloSpawnError(f"Permission denied running {args[0]}") from e
        except OSError as e:
            raise KiloSpawnError(f"Failed to start {args[0]}: {e}") from e

        log.debug("Spawned kilo pid %d in %s", process.pid, cwd)
        return ProcessHandle(
            process,
            on_line=on_line,
            on_exit=on_exit,
            on_eof=on_eof,
            terminate_timeout=self._terminate_timeout,
        )
