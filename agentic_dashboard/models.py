from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Tools: the four wrapped CLI programs and their display labels
# ---------------------------------------------------------------------------

TOOL_NAMES: dict[str, str] = {
    "auto-claude": "Auto-Claude",
    "continuous-claude": "Continuous Claude",
    "automaker": "Automaker",
    "acfs": "ACFS",
}

MAX_RUNS = 20           # run history length, newest first
OUTPUT_TAIL_CHARS = 1000  # trailing window kept in ToolState.output


class ToolStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
    SUCCESS = "success"


class RunStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def tail(text: str, num_chars: int = OUTPUT_TAIL_CHARS) -> str:
    return text[-num_chars:] if len(text) > num_chars else text


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

@dataclass
class ToolState:
    name: str
    status: ToolStatus = ToolStatus.IDLE
    output: str = ""
    pid: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "output": self.output,
        }
        if self.pid is not None:
            data["pid"] = self.pid
        return data

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> ToolState:
        try:
            status = ToolStatus(data.get("status", "idle"))
        except ValueError:
            status = ToolStatus.IDLE
        pid = data.get("pid")
        return cls(
            name=str(data.get("name") or TOOL_NAMES.get(key, key)),
            status=status,
            output=str(data.get("output") or ""),
            pid=pid if isinstance(pid, int) and not isinstance(pid, bool) else None,
        )


@dataclass
class Run:
    id: str
    tool: str
    prompt: str
    status: RunStatus
    started_at: str
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tool": self.tool,
            "prompt": self.prompt,
            "status": self.status.value,
            "startedAt": self.started_at,
            "output": self.output,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Run:
        try:
            status = RunStatus(data.get("status", "running"))
        except ValueError:
            status = RunStatus.FAILED
        return cls(
            id=str(data["id"]),
            tool=str(data.get("tool", "")),
            prompt=str(data.get("prompt", "")),
            status=status,
            started_at=str(data.get("startedAt", "")),
            output=str(data.get("output") or ""),
        )


@dataclass
class DashboardState:
    tools: dict[str, ToolState] = field(default_factory=dict)
    runs: list[Run] = field(default_factory=list)

    @classmethod
    def default(cls) -> DashboardState:
        return cls(tools={key: ToolState(name=name) for key, name in TOOL_NAMES.items()})

    def to_dict(self) -> dict[str, Any]:
        return {
            "tools": {key: tool.to_dict() for key, tool in self.tools.items()},
            "runs": [run.to_dict() for run in self.runs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DashboardState:
        """Build from a decoded document, filling in any missing tool keys.

        Raises TypeError/KeyError/AttributeError on a document of the wrong shape.
        """
        state = cls.default()
        for key, raw in (data.get("tools") or {}).items():
            state.tools[key] = ToolState.from_dict(key, raw)
        state.runs = [Run.from_dict(raw) for raw in (data.get("runs") or [])][:MAX_RUNS]
        return state
