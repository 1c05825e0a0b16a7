from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from ..config import Config
from ..errors import ExternalProcessError, ValidationError
from ..models import RunStatus, ToolStatus, tail
from ..process_manager import DetachedProcess, ProcessRunner, kill_matching, terminate_group
from ..store import StateStore

log = logging.getLogger(__name__)


def require_text(params: dict[str, Any], field: str, message: str) -> str:
    """Return a non-blank string field or raise ValidationError(message)."""
    value = params.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value


def optional_text(params: dict[str, Any], field: str) -> str | None:
    value = params.get(field)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


class ToolAdapter(ABC):
    """Translates start/stop requests for one wrapped tool into processes
    and State Store updates."""

    key: str
    display_name: str
    # pkill -f patterns that identify this tool's processes
    stop_patterns: tuple[str, ...] = ()
    success_message: str = "Process completed successfully"

    def __init__(self, config: Config, store: StateStore, runner: ProcessRunner) -> None:
        self.config = config
        self.store = store
        self.runner = runner
        self._stop_requested: set[int] = set()

    @abstractmethod
    async def start(self, params: dict[str, Any]) -> dict[str, Any]:
        ...

    async def stop(self) -> dict[str, Any]:
        """Best-effort termination. Succeeds whether or not anything was running."""
        handle = self.runner.latest(self.key)
        if handle is not None and handle.running:
            self._stop_requested.add(handle.pid)
            # The tool leads its own session; take down the whole group
            terminate_group(handle.pid)

        for pattern in self.stop_patterns:
            await kill_matching(pattern)
        await self._extra_stop()

        self.store.upsert_tool(self.key, ToolStatus.IDLE, "Stopped by user")
        log.info("%s stopped by user", self.display_name)
        return {"message": f"{self.display_name} stopped"}

    async def _extra_stop(self) -> None:
        """Hook for tools that need more than pkill to shut down."""

    # ------------------------------------------------------------------
    # Launch helper shared by the process-backed tools
    # ------------------------------------------------------------------

    async def _launch(
        self,
        command: str,
        args: list[str],
        *,
        prompt: str,
        running_message: str,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Spawn, then record the optimistic running state and the run.

        Nothing awaits between the spawn returning and the two store writes,
        so the exit callback cannot overtake them.
        """
        handle: DetachedProcess | None = None
        run_id: str | None = None

        async def on_exit(code: int, output: str) -> None:
            self._record_exit(handle, run_id, code, output)

        try:
            handle = await self.runner.spawn(
                command, args, tool=self.key, cwd=cwd, env=env, on_exit=on_exit,
            )
        except ExternalProcessError as exc:
            self.store.upsert_tool(self.key, ToolStatus.ERROR, exc.message)
            self.store.prepend_run(self.display_name, prompt, RunStatus.FAILED, output=exc.message)
            return {
                "message": f"{self.display_name} failed to start",
                "error": exc.message,
            }

        self.store.upsert_tool(self.key, ToolStatus.RUNNING, running_message, handle.pid)
        run_id = self.store.prepend_run(self.display_name, prompt, RunStatus.RUNNING)

        return {
            "message": f"{self.display_name} started with PID {handle.pid}",
            "pid": handle.pid,
            "logFile": handle.log_file,
        }

    def _record_exit(
        self,
        handle: DetachedProcess | None,
        run_id: str | None,
        code: int,
        output: str,
    ) -> None:
        stopped = handle is not None and handle.pid in self._stop_requested
        if handle is not None:
            self._stop_requested.discard(handle.pid)

        if code == 0:
            tool_status, run_status = ToolStatus.SUCCESS, RunStatus.COMPLETED
            message = self.success_message
        else:
            tool_status, run_status = ToolStatus.ERROR, RunStatus.FAILED
            message = f"Process exited with code {code}"
            if output:
                message = f"{message}\n{output}"
        if stopped:
            message = "Stopped by user"

        if run_id is not None:
            self.store.update_run(run_id, run_status, output or message)

        # A stop already wrote idle; a newer spawn owns the tool's status.
        if stopped or self.runner.latest(self.key) is not handle:
            return
        self.store.upsert_tool(self.key, tool_status, tail(message))
