"""
Child Process Supervisor

Owns the one long-lived child process: spawns it with piped stdio, pumps
stdout chunks to a callback, forwards stderr to the log, serializes writes to
stdin and reports the exit code exactly once.
"""

import asyncio
import os
from typing import Callable, Mapping, Optional, Sequence

from stdio_bridge.configs.constants import get_timeout
from stdio_bridge.configs.logging import get_logger
from stdio_bridge.exceptions import NotWritable, ProcessSpawnError

logger = get_logger("process.supervisor")
child_logger = get_logger("bridge.child")

READ_CHUNK_SIZE = 64 * 1024

# How long to wait for stdout EOF after the child exits. A grandchild that
# inherited the pipe can hold it open indefinitely.
STDOUT_DRAIN_TIMEOUT = 1.0

# Process.wait() only returns once every pipe is closed, so exit is detected
# by polling the returncode the child watcher sets.
EXIT_POLL_INTERVAL = 0.05


def build_child_env(overlay: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Merge the overlay over this process's environment (overlay wins)."""
    env = os.environ.copy()
    if overlay:
        env.update(overlay)
    return env


class ChildProcess:
    """
    Supervised child process speaking over stdin/stdout.

    Args:
        command: Executable name or path
        args: Arguments passed after the executable
        env: Environment overlay merged over os.environ
        on_output: Called with every stdout chunk, in order
        on_exit: Called once with the exit code after stdout is drained
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
        on_output: Optional[Callable[[bytes], None]] = None,
        on_exit: Optional[Callable[[Optional[int]], None]] = None,
    ):
        self.command = command
        self.args = list(args)
        self.env = dict(env or {})
        self.on_output = on_output
        self.on_exit = on_exit

        self._proc: Optional[asyncio.subprocess.Process] = None
        self._write_lock = asyncio.Lock()
        self._stdout_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._exit_reported = False
        self._stopping = False

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc else None

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        """
        Spawn the child.

        Raises:
            ProcessSpawnError: If the executable cannot be launched
        """
        if self._proc is not None:
            return

        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=build_child_env(self.env),
            )
        except OSError as e:
            raise ProcessSpawnError(f"Failed to launch {self.command}: {e}", self.argv) from e

        logger.info(f"Started child pid={self._proc.pid}: {' '.join(self.argv)}")

        self._stdout_task = asyncio.create_task(self._pump_stdout())
        self._stderr_task = asyncio.create_task(self._pump_stderr())
        self._watch_task = asyncio.create_task(self._watch())

    async def write(self, data: bytes) -> None:
        """
        Write one complete frame to the child's stdin.

        Raises:
            NotWritable: If stdin is closed or the child has exited
        """
        proc = self._proc
        if proc is None or proc.returncode is not None or proc.stdin is None or proc.stdin.is_closing():
            raise NotWritable("MCP process is not writable")

        async with self._write_lock:
            try:
                proc.stdin.write(data)
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise NotWritable(f"MCP process is not writable: {e}") from e

    async def stop(self, grace: Optional[float] = None) -> None:
        """Close stdin, terminate the child and wait for the exit to be reported."""
        if self._proc is None:
            return
        if grace is None:
            grace = get_timeout("shutdown_grace")

        proc = self._proc
        self._stopping = True
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()

        if proc.returncode is None:
            logger.info(f"Stopping child pid={proc.pid}")
            try:
                proc.terminate()
                await asyncio.wait_for(self._exited(), timeout=grace)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                logger.warning(f"Child pid={proc.pid} ignored SIGTERM for {grace}s, killing")
                try:
                    proc.kill()
                    await asyncio.wait_for(self._exited(), timeout=grace)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    logger.error(f"Child pid={proc.pid} still running after SIGKILL")

        if self._watch_task is not None:
            await asyncio.wait({self._watch_task}, timeout=grace + STDOUT_DRAIN_TIMEOUT)

        # A grandchild may still hold the pipes open
        for task in (self._stdout_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()

    async def _pump_stdout(self) -> None:
        stream = self._proc.stdout
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            if self.on_output is None:
                continue
            try:
                self.on_output(chunk)
            except Exception:
                logger.exception("Output handler failed")

    async def _pump_stderr(self) -> None:
        stream = self._proc.stderr
        pending = bytearray()
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending.extend(chunk)
            index = pending.rfind(b"\n")
            if index == -1:
                continue
            self._log_stderr(bytes(pending[:index]))
            del pending[: index + 1]
        # Unterminated last line
        self._log_stderr(bytes(pending))

    @staticmethod
    def _log_stderr(data: bytes) -> None:
        for line in data.decode("utf-8", "replace").splitlines():
            text = line.strip()
            if text:
                child_logger.info(text)

    async def _exited(self) -> int:
        while self._proc.returncode is None:
            await asyncio.sleep(EXIT_POLL_INTERVAL)
        return self._proc.returncode

    async def _watch(self) -> None:
        code = await self._exited()
        await asyncio.wait({self._stdout_task, self._stderr_task}, timeout=STDOUT_DRAIN_TIMEOUT)
        self._report_exit(code)

    def _report_exit(self, code: Optional[int]) -> None:
        if self._exit_reported:
            return
        self._exit_reported = True
        if self._stopping:
            logger.info(f"MCP process exited with code {code}")
        else:
            logger.error(f"MCP process exited with code {code}")
        if self.on_exit is not None:
            self.on_exit(code)
