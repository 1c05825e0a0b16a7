"""ACFS environment adapter: tool health checks and NTM agent sessions.

Unlike the other tools, ACFS is driven through short request/response
commands run in the environment user's login shell rather than through a
detached process.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
import time
from typing import Any

from ..errors import CommandError, UnknownAction, ValidationError
from ..models import ToolStatus
from ..process_manager import CommandResult, run_as_user
from .base import ToolAdapter

log = logging.getLogger(__name__)

ACFS_VERSION = "0.1.0"

# (tool name, version command) pairs checked by environment()
TOOL_CHECKS: list[tuple[str, str]] = [
    ("bun", "bun --version"),
    ("cargo", "cargo --version"),
    ("go", "go version"),
    ("uv", "uv --version"),
    ("claude", "claude --version"),
    ("ntm", "ntm --version 2>/dev/null || echo installed"),
    ("bat", "bat --version"),
    ("rg", "rg --version"),
    ("fd", "fd --version"),
]

ONBOARD_FILE = "~/.acfs/onboard/00_welcome.md"

_SESSION_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_session_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise ValidationError("sessionName is required")
    if not _SESSION_NAME.match(name):
        raise ValidationError(
            "sessionName may only contain letters, digits, '.', '_' and '-'"
        )
    return name


def _agent_count(agents: dict[str, Any], kind: str, default: int) -> int:
    value = agents.get(kind)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"agents.{kind} must be a non-negative integer")
    return value


def build_ntm_spawn_command(name: str, claude: int = 1, codex: int = 0) -> str:
    """``ntm spawn`` only gets ``--cod`` when codex agents are requested."""
    cmd = f"ntm spawn {shlex.quote(name)} --cc={claude}"
    if codex > 0:
        cmd += f" --cod={codex}"
    return cmd


class AcfsAdapter(ToolAdapter):
    key = "acfs"
    display_name = "ACFS"
    stop_patterns = ("ntm spawn",)

    async def _run(self, command: str) -> CommandResult:
        return await run_as_user(command, self.config.acfs_user)

    @property
    def _ssh_target(self) -> str:
        if self.config.acfs_user:
            return f"{self.config.acfs_user}@{self.config.ssh_host}"
        return self.config.ssh_host

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def environment(self) -> dict[str, Any]:
        """Installed tool versions and live tmux sessions."""
        results = await asyncio.gather(
            *(self._run(cmd) for _, cmd in TOOL_CHECKS),
            return_exceptions=True,
        )
        tools: dict[str, dict[str, Any]] = {}
        for (name, _), result in zip(TOOL_CHECKS, results):
            if isinstance(result, CommandError):
                tools[name] = {"version": "not found", "installed": False}
            elif isinstance(result, BaseException):
                raise result
            else:
                lines = result.stdout.strip().splitlines()
                tools[name] = {"version": lines[0] if lines else "", "installed": True}

        return {
            "tools": tools,
            "ntmSessions": await self.list_sessions(),
            "acfsVersion": ACFS_VERSION,
        }

    async def list_sessions(self) -> list[str]:
        try:
            result = await self._run('tmux list-sessions -F "#{session_name}" 2>/dev/null || echo ""')
        except CommandError as exc:
            log.warning("Could not list tmux sessions: %s", exc)
            return []
        return [s for s in result.stdout.strip().splitlines() if s]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def start(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.dispatch(params)

    async def dispatch(self, params: dict[str, Any]) -> dict[str, Any]:
        action = params.get("action")
        handlers = {
            "doctor": self._doctor,
            "ntm-spawn": self._ntm_spawn,
            "ntm-attach": self._ntm_attach,
            "ntm-kill": self._ntm_kill,
            "onboard": self._onboard,
        }
        handler = handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            raise UnknownAction("Unknown action")
        return await handler(params)

    async def _doctor(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            result = await self._run("acfs doctor 2>&1")
        except CommandError as exc:
            return {
                "success": False,
                "output": exc.stdout or exc.stderr or exc.message,
                "error": "Doctor check failed",
            }
        return {
            "success": True,
            "output": result.stdout or result.stderr,
            "message": "ACFS doctor completed",
        }

    async def _ntm_spawn(self, params: dict[str, Any]) -> dict[str, Any]:
        raw_name = params.get("sessionName") or f"session-{int(time.time() * 1000)}"
        name = validate_session_name(raw_name)
        agents = params.get("agents") or {}
        if not isinstance(agents, dict):
            raise ValidationError("agents must be an object")
        claude = _agent_count(agents, "claude", 1) or 1
        codex = _agent_count(agents, "codex", 0)

        project_dir = f"{self.config.projects_dir.rstrip('/')}/{name}"
        try:
            await self._run(f"mkdir -p {shlex.quote(project_dir)}")
            result = await self._run(build_ntm_spawn_command(name, claude, codex))
        except CommandError as exc:
            log.warning("NTM spawn of %s failed: %s", name, exc)
            return {"success": False, "error": exc.message}

        self.store.upsert_tool(self.key, ToolStatus.RUNNING, f'NTM session "{name}" spawned')
        return {
            "success": True,
            "message": f'NTM session "{name}" created',
            "output": result.stdout,
            "sessionName": name,
        }

    async def _ntm_attach(self, params: dict[str, Any]) -> dict[str, Any]:
        # Interactive attachment cannot go through HTTP; hand back the command.
        name = validate_session_name(params.get("sessionName"))
        command = f"tmux attach -t {name}"
        target = self._ssh_target
        return {
            "success": True,
            "message": f'To attach, run: ssh {target} -t "{command}"',
            "command": command,
        }

    async def _ntm_kill(self, params: dict[str, Any]) -> dict[str, Any]:
        name = validate_session_name(params.get("sessionName"))
        try:
            await self.kill_session(name)
        except CommandError as exc:
            return {"success": False, "error": exc.message}
        return {"success": True, "message": f'Session "{name}" killed'}

    async def _onboard(self, params: dict[str, Any]) -> dict[str, Any]:
        target = self._ssh_target
        message = f'To run onboard interactively: ssh {target} then run "onboard"'
        try:
            result = await self._run(
                f'cat {ONBOARD_FILE} 2>/dev/null || echo "Run: ssh {target} then: onboard"'
            )
        except CommandError:
            return {"success": True, "message": message}
        return {"success": True, "output": result.stdout, "message": message}

    async def kill_session(self, name: str) -> dict[str, Any]:
        name = validate_session_name(name)
        await self._run(f"tmux kill-session -t {shlex.quote(name)}")
        log.info("Killed tmux session %s", name)
        return {"message": f'Session "{name}" killed'}
