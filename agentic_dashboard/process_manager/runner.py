"""Spawns detached tool processes and runs short shell commands."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import subprocess
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from ..errors import CommandError, ExternalProcessError, PreconditionError
from ..models import OUTPUT_TAIL_CHARS

log = logging.getLogger(__name__)

# Timeout for commands run as the environment user
USER_COMMAND_TIMEOUT = 60.0

# Tool binaries live in per-user install prefixes that a login shell
# does not always put on PATH.
USER_PATH_EXPORT = (
    'export PATH="$HOME/.local/bin:$HOME/.bun/bin:$HOME/.cargo/bin:/usr/local/go/bin:$PATH"'
)

ExitCallback = Callable[[int, str], Awaitable[None]]


@dataclass
class RingBuffer:
    """Fixed-size character buffer holding the tail of a process's output."""

    max_size: int = OUTPUT_TAIL_CHARS
    _buf: deque[str] = field(default_factory=deque)
    _total_chars: int = 0

    def append(self, data: str) -> None:
        self._buf.append(data)
        self._total_chars += len(data)
        # Evict whole chunks while the remainder still covers max_size
        while self._buf and self._total_chars - len(self._buf[0]) >= self.max_size:
            evicted = self._buf.popleft()
            self._total_chars -= len(evicted)

    def tail(self, num_chars: int | None = None) -> str:
        """Return the last `num_chars` characters (default: the whole window)."""
        text = "".join(self._buf)
        limit = self.max_size if num_chars is None else min(num_chars, self.max_size)
        return text[-limit:] if limit > 0 else ""


@dataclass
class DetachedProcess:
    """Handle for a spawned tool process.

    The runner does not own the child's lifetime: it lives in its own session
    and keeps running if the server exits. The handle only observes it.
    """

    tool: str
    command: str
    args: list[str]
    cwd: str
    pid: int
    log_file: str
    start_time: float = field(default_factory=time.time)
    exit_code: int | None = None
    output: RingBuffer = field(default_factory=RingBuffer)
    _waiter: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def running(self) -> bool:
        return self.exit_code is None

    async def wait(self) -> int | None:
        """Wait until the exit callback has run. Mostly useful in tests."""
        if self._waiter is not None:
            await asyncio.shield(self._waiter)
        return self.exit_code


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


class ProcessRunner:
    """Spawns detached tool processes and keeps the latest handle per tool."""

    def __init__(self, log_dir: str | Path) -> None:
        self.log_dir = Path(log_dir)
        self._latest: dict[str, DetachedProcess] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def spawn(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        tool: str,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        on_exit: ExitCallback | None = None,
    ) -> DetachedProcess:
        """Start `command` detached and return its handle without waiting.

        Combined stdout/stderr goes to ``<log_dir>/<tool>-<ms>.log`` and to
        the handle's tail buffer. When the child exits, the log is closed
        and ``on_exit(exit_code, output_tail)`` is awaited.
        """
        proc_args = args or []
        resolved_cwd = cwd or os.getcwd()
        log_path = self.log_dir / f"{tool}-{int(time.time() * 1000)}.log"

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_fh = open(log_path, "wb")
        except OSError as exc:
            raise PreconditionError(
                f"Cannot create log file {log_path}: {exc}. Check DASHBOARD_LOG_DIR."
            ) from exc

        # Merge environment
        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *proc_args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=resolved_cwd,
                env=spawn_env,
                # New session: the child survives the request and the server
                preexec_fn=os.setsid,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            log_fh.write(f"Failed to start {command}: {exc}\n".encode())
            log_fh.close()
            log.warning("Failed to spawn %s for %s: %s", command, tool, exc)
            raise ExternalProcessError(f"Failed to start {command}: {exc}") from exc

        handle = DetachedProcess(
            tool=tool,
            command=command,
            args=proc_args,
            cwd=resolved_cwd,
            pid=process.pid,
            log_file=str(log_path),
        )
        self._latest[tool] = handle
        log.info("Spawned %s (pid=%s, log=%s)", tool, handle.pid, log_path)

        reader = asyncio.create_task(
            self._read_stream(process.stdout, handle.output, log_fh),  # type: ignore[arg-type]
            name=f"{tool}-output",
        )
        handle._waiter = asyncio.create_task(
            self._wait_for_exit(process, handle, reader, log_fh, on_exit),
            name=f"{tool}-waiter",
        )
        return handle

    def latest(self, tool: str) -> DetachedProcess | None:
        return self._latest.get(tool)

    def get_output(self, tool: str, tail: int = OUTPUT_TAIL_CHARS) -> dict[str, Any]:
        """Return the buffered output tail of the tool's most recent spawn."""
        handle = self._latest.get(tool)
        if handle is None:
            raise KeyError(f"No process spawned for '{tool}'")
        return {
            "tool": tool,
            "pid": handle.pid,
            "running": handle.running,
            "exit_code": handle.exit_code,
            "log_file": handle.log_file,
            "output": handle.output.tail(tail),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _read_stream(
        stream: asyncio.StreamReader,
        buf: RingBuffer,
        log_fh: IO[bytes],
    ) -> None:
        """Tee a child's output into its log file and tail buffer."""
        try:
            while True:
                chunk = await stream.read(4096)
                if not chunk:
                    break
                log_fh.write(chunk)
                log_fh.flush()
                buf.append(chunk.decode("utf-8", errors="replace"))
        except asyncio.CancelledError:
            pass

    @staticmethod
    async def _wait_for_exit(
        process: asyncio.subprocess.Process,
        handle: DetachedProcess,
        reader: asyncio.Task[None],
        log_fh: IO[bytes],
        on_exit: ExitCallback | None,
    ) -> None:
        code = await process.wait()
        # Grandchildren may hold the pipe open after the child exits
        try:
            await asyncio.wait_for(reader, timeout=5.0)
        except asyncio.TimeoutError:
            reader.cancel()
        log_fh.close()
        handle.exit_code = code
        log.info("%s (pid=%s) exited with code %s", handle.tool, handle.pid, code)
        if on_exit is None:
            return
        try:
            await on_exit(code, handle.output.tail())
        except Exception:
            log.exception("Exit callback failed for %s (pid=%s)", handle.tool, handle.pid)


# ----------------------------------------------------------------------
# Liveness and process-table helpers
# ----------------------------------------------------------------------

def is_alive(pid: Any) -> bool:
    """Send signal 0 to `pid`. Any failure counts as not alive."""
    if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def terminate_group(pid: int, sig: int = signal.SIGTERM) -> bool:
    """Signal the process group led by `pid`. False if it is already gone."""
    try:
        pgid = os.getpgid(pid)
        os.killpg(pgid, sig)
    except (ProcessLookupError, PermissionError) as exc:
        log.debug("Cannot signal process group of %s: %s", pid, exc)
        return False
    return True


async def run_command(
    command: str,
    *,
    timeout: float | None = None,
    check: bool = True,
) -> CommandResult:
    """Run a shell command and capture its output.

    Raises CommandError on a non-zero exit (when `check`) or on timeout.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandError(f"Command timed out after {timeout:g}s: {command}")

    result = CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
    if check and result.returncode != 0:
        raise CommandError(
            f"Command failed with exit code {result.returncode}: {command}",
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def user_command(command: str, user: str | None) -> str:
    """Wrap `command` so it runs in `user`'s login environment."""
    script = f"{USER_PATH_EXPORT}; {command}"
    if not user:
        return f"bash -c {shlex.quote(script)}"
    return f"sudo -u {shlex.quote(user)} -i bash -c {shlex.quote(script)}"


async def run_as_user(
    command: str,
    user: str | None,
    *,
    timeout: float = USER_COMMAND_TIMEOUT,
) -> CommandResult:
    return await run_command(user_command(command, user), timeout=timeout)


async def _exec_capture(*argv: str) -> CommandResult | None:
    """Run argv without a shell; None if the binary is unavailable."""
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        log.debug("Cannot run %s: %s", argv[0], exc)
        return None
    out, err = await process.communicate()
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )


def _parse_pids(text: str) -> list[int]:
    return [int(tok) for tok in text.split() if tok.isdigit()]


async def find_pids(pattern: str) -> list[int]:
    """pgrep -f; empty when nothing matches or pgrep is missing."""
    result = await _exec_capture("pgrep", "-f", pattern)
    if result is None or result.returncode != 0:
        return []
    return _parse_pids(result.stdout)


async def kill_matching(pattern: str) -> None:
    """pkill -f; a no-match or missing pkill is not an error."""
    result = await _exec_capture("pkill", "-f", pattern)
    if result is not None and result.returncode not in (0, 1):
        log.warning("pkill -f %r exited with %s: %s", pattern, result.returncode, result.stderr.strip())


async def free_port(port: int) -> list[int]:
    """SIGKILL whatever is listening on `port`. Returns the pids signalled."""
    result = await _exec_capture("lsof", f"-ti:{port}")
    if result is None or result.returncode != 0:
        return []
    killed = []
    for pid in _parse_pids(result.stdout):
        try:
            os.kill(pid, signal.SIGKILL)
            killed.append(pid)
        except (ProcessLookupError, PermissionError) as exc:
            log.warning("Could not kill pid %s on port %s: %s", pid, port, exc)
    return killed
