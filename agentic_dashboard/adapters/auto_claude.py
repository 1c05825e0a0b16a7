from __future__ import annotations

import os
from typing import Any

from ..errors import PreconditionError, ValidationError
from .base import ToolAdapter, optional_text, require_text

COMPLEXITIES = ("simple", "standard", "complex")


def build_args(task: str, complexity: str | None = None) -> list[str]:
    args = ["spec_runner.py", "--task", task]
    if complexity:
        args.extend(["--complexity", complexity])
    return args


class AutoClaudeAdapter(ToolAdapter):
    """Multi-agent spec generator, run from its backend checkout."""

    key = "auto-claude"
    display_name = "Auto-Claude"
    stop_patterns = ("python.*spec_runner.py", "python.*run.py")
    success_message = "Spec created successfully"

    async def start(self, params: dict[str, Any]) -> dict[str, Any]:
        task = require_text(params, "task", "Task description is required")
        complexity = optional_text(params, "complexity")
        if complexity is not None and complexity not in COMPLEXITIES:
            raise ValidationError(
                f"complexity must be one of: {', '.join(COMPLEXITIES)}"
            )
        project_dir = optional_text(params, "projectDir") or os.getcwd()

        backend_dir = self.config.auto_claude_backend
        if not backend_dir.is_dir():
            raise PreconditionError("Auto-Claude backend not found. Run setup first.")

        return await self._launch(
            self.config.python_bin,
            build_args(task, complexity),
            prompt=task,
            running_message=f"Creating spec for: {task}",
            cwd=str(backend_dir),
            env={"PROJECT_DIR": project_dir},
        )
