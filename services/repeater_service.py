import asyncio
import enum
import re
import typer
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

from core.config import ConfigManager
from core.errors import LaunchError, LaunchTimeoutError, UnexpectedTerminationError
from core.repeater_config import RepeaterConfig, write_temp_config

class ProcessState(enum.Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    READY = "ready"
    ACTIVE = "active"
    STOPPING = "stopping"
    TERMINATED = "terminated"

ExitHandler = Callable[[UnexpectedTerminationError], None]

async def read_lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Yields lines until EOF. A line longer than the stream limit comes out in pieces."""
    while True:
        try:
            line = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if e.partial:
                yield e.partial
            return
        except asyncio.LimitOverrunError as e:
            line = await stream.read(max(e.consumed, 1))
        yield line

class RepeaterService:
    """
    Supervises the repeater subprocess.
    Writes its config payload to a temp file, launches it, waits for the
    readiness marker on stdout and relays its stderr. If the process exits
    without a stop having been requested, the exit is reported to
    `on_unexpected_exit` as an UnexpectedTerminationError.
    """
    def __init__(self, config: ConfigManager, port: Optional[int] = None,
                 server_port: Optional[int] = None, on_unexpected_exit: Optional[ExitHandler] = None):
        self.port = port or config.get("repeater", "port")
        self.server_port = server_port or config.get("collector", "port")
        self.name = f"repeater:{self.port}"
        self.command: List[str] = list(config.get("repeater", "command"))
        self.cwd = config.get("repeater", "cwd")
        self.ready_pattern = re.compile(config.get("repeater", "ready_pattern"))
        self.launch_timeout = float(config.get("repeater", "launch_timeout_seconds"))
        self.stop_timeout = float(config.get("repeater", "stop_timeout_seconds"))
        self.verbose = config.verbose
        self.config = RepeaterConfig.from_settings(config, self.port, self.server_port)
        self.on_unexpected_exit = on_unexpected_exit

        self.state = ProcessState.IDLE
        self.running = False
        self.stop_requested = False
        self.config_path: Optional[str] = None
        self.exit_code: Optional[int] = None
        self.exit_error: Optional[UnexpectedTerminationError] = None

        self._process: Optional[asyncio.subprocess.Process] = None
        self._ready: Optional[asyncio.Future] = None
        self._stdout_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._exit_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    async def start(self):
        """Launches the repeater and returns once it reports it is listening."""
        if self.state is not ProcessState.IDLE:
            raise LaunchError(f"{self.name} has already been started.")

        self.state = ProcessState.LAUNCHING
        self.stop_requested = False
        self.config_path = write_temp_config(self.config)
        if self.verbose:
            typer.secho(f"[REPEATER] Wrote config file {self.config_path}", dim=True)
        typer.secho(f"[REPEATER] Starting repeater listening on {self.port}, "
                    f"forwarding to {self.server_port}...", fg=typer.colors.CYAN)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command, self.config_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as e:
            self.state = ProcessState.TERMINATED
            self._remove_config()
            raise LaunchError(f"Failed to launch {self.name}: {e}") from e

        self.running = True
        self.state = ProcessState.READY
        self._ready = asyncio.get_running_loop().create_future()
        self._stdout_task = asyncio.create_task(self._watch_stdout(self._process.stdout))
        self._stderr_task = asyncio.create_task(self._relay_stderr(self._process.stderr))
        self._exit_task = asyncio.create_task(self._watch_exit())

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout=self.launch_timeout)
        except asyncio.TimeoutError:
            typer.secho(f"[REPEATER] {self.name} did not report ready within {self.launch_timeout}s.",
                        fg=typer.colors.RED, bold=True)
            await self.stop()
            raise LaunchTimeoutError(
                f"{self.name} did not print '{self.ready_pattern.pattern}' within {self.launch_timeout}s") from None

        typer.secho(f"[REPEATER] Repeater server is up (PID: {self.pid}).", fg=typer.colors.GREEN)

    async def stop(self):
        """Requests shutdown and returns once the process has exited."""
        self.stop_requested = True
        if not self.running:
            # Never launched, or already gone.
            return

        self.state = ProcessState.STOPPING
        typer.secho(f"[REPEATER] Stopping {self.name} (PID: {self.pid})...", fg=typer.colors.CYAN, dim=True)
        try:
            self._process.terminate()
        except ProcessLookupError:
            # Exited between the check and the signal; the exit watcher finishes up.
            pass

        try:
            await asyncio.wait_for(asyncio.shield(self._exit_task), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            typer.secho(f"[REPEATER] {self.name} did not terminate gracefully. Forcing kill.", fg=typer.colors.YELLOW)
            try:
                self._process.kill()
            except ProcessLookupError:
                # Exited on its own after the timeout fired.
                pass
            await self._exit_task

    async def _watch_stdout(self, stream: asyncio.StreamReader):
        async for line in read_lines(stream):
            text = line.decode("utf-8", errors="replace").rstrip("\n")
            if self.verbose:
                typer.secho(f"[REPEATER] {text}", dim=True)
            if not self._ready.done() and self.ready_pattern.search(text):
                self.state = ProcessState.ACTIVE
                self._ready.set_result(None)

    async def _relay_stderr(self, stream: asyncio.StreamReader):
        async for line in read_lines(stream):
            typer.secho("stderr: " + line.decode("utf-8", errors="replace").rstrip("\n"), err=True)

    async def _watch_exit(self):
        code = await self._process.wait()
        # Drain whatever the process wrote before it went away. A broken
        # reader must not cost us the exit.
        for result in await asyncio.gather(self._stdout_task, self._stderr_task, return_exceptions=True):
            if isinstance(result, Exception):
                typer.secho(f"[REPEATER] Output watcher for {self.name} failed: {result!r}",
                            fg=typer.colors.YELLOW, err=True)

        self.running = False
        self.exit_code = code
        self.state = ProcessState.TERMINATED
        self._remove_config()

        if not self._ready.done():
            if self.stop_requested:
                self._ready.cancel()
            else:
                self._ready.set_exception(LaunchError(
                    f"{self.name} exited with code {code} before it was ready.", exit_code=code))
            return

        if self.stop_requested:
            if self.verbose:
                typer.secho(f"[REPEATER] {self.name} exited with code {code}.", dim=True)
            return

        error = UnexpectedTerminationError(self.name, code)
        self.exit_error = error
        typer.secho(f"[REPEATER] {error}", fg=typer.colors.RED, bold=True, err=True)
        if self.on_unexpected_exit is not None:
            self.on_unexpected_exit(error)

    def _remove_config(self):
        if self.config_path:
            Path(self.config_path).unlink(missing_ok=True)
