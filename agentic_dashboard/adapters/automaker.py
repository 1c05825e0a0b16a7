from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..errors import PreconditionError, ValidationError
from ..process_manager import find_pids, free_port
from .base import ToolAdapter

log = logging.getLogger(__name__)

# Patterns that identify a running task-board dev server, tried in order
SERVER_PATTERNS = ("automaker.*dev:web", "npm.*dev:web.*automaker")


async def find_server_pid() -> int | None:
    for pattern in SERVER_PATTERNS:
        pids = await find_pids(pattern)
        if pids:
            return pids[0]
    return None


class AutomakerAdapter(ToolAdapter):
    """Visual task-board: a long-running web dev server on a fixed port."""

    key = "automaker"
    display_name = "Automaker"
    stop_patterns = ("automaker.*dev", "npm.*run.*dev.*automaker")
    success_message = "Server exited"

    async def start(self, params: dict[str, Any]) -> dict[str, Any]:
        if params.get("action") != "start":
            raise ValidationError("Invalid action")

        existing = await find_server_pid()
        if existing is not None:
            return {"message": "Automaker is already running", "pid": existing}

        workdir = Path(self.config.automaker_dir)
        if not workdir.is_dir():
            raise PreconditionError(
                f"Automaker not found at {workdir}. Clone and install it first."
            )

        url = self.config.automaker_url
        result = await self._launch(
            "npm",
            ["run", "dev:web"],
            prompt="npm run dev:web",
            running_message=f"Server starting on {url}",
            cwd=str(workdir),
            env={"PORT": str(self.config.automaker_port)},
        )
        if "pid" in result:
            result["message"] = f"Automaker started on {url}"
            result["url"] = url
        return result

    async def _extra_stop(self) -> None:
        killed = await free_port(self.config.automaker_port)
        if killed:
            log.info("Freed port %s (killed %s)", self.config.automaker_port, killed)
