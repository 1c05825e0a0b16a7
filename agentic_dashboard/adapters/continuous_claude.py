from __future__ import annotations

import os
from typing import Any

from ..errors import ValidationError
from .base import ToolAdapter, optional_text, require_text

DEFAULT_MAX_RUNS = 5


def parse_max_runs(value: Any) -> int:
    if value is None or value == 0 or value == "":
        return DEFAULT_MAX_RUNS
    if isinstance(value, bool):
        raise ValidationError("maxRuns must be a positive integer")
    if isinstance(value, int):
        runs = value
    elif isinstance(value, float) and value.is_integer():
        runs = int(value)
    elif isinstance(value, str):
        try:
            runs = int(value.strip())
        except ValueError:
            raise ValidationError("maxRuns must be a positive integer") from None
    else:
        raise ValidationError("maxRuns must be a positive integer")
    if runs < 1:
        raise ValidationError("maxRuns must be a positive integer")
    return runs


def split_repo(repo: str | None, owner: str | None) -> tuple[str | None, str | None]:
    """``owner/name`` wins over a separate owner field."""
    if not repo:
        return owner, None
    if "/" in repo:
        repo_owner, _, repo_name = repo.partition("/")
        return repo_owner or None, repo_name or None
    return owner, repo


def build_args(prompt: str, max_runs: int, repo: str | None = None, owner: str | None = None) -> list[str]:
    args = ["--prompt", prompt, "--max-runs", str(max_runs)]
    repo_owner, repo_name = split_repo(repo, owner)
    if repo_name:
        if repo_owner:
            args.extend(["--owner", repo_owner])
        args.extend(["--repo", repo_name])
    return args


class ContinuousClaudeAdapter(ToolAdapter):
    """PR-loop automation: repeatedly opens and iterates on pull requests."""

    key = "continuous-claude"
    display_name = "Continuous Claude"
    binary = "continuous-claude"
    stop_patterns = ("continuous-claude",)

    async def start(self, params: dict[str, Any]) -> dict[str, Any]:
        prompt = require_text(params, "prompt", "Prompt is required")
        max_runs = parse_max_runs(params.get("maxRuns"))
        args = build_args(
            prompt,
            max_runs,
            repo=optional_text(params, "repo"),
            owner=optional_text(params, "owner"),
        )

        return await self._launch(
            self.binary,
            args,
            prompt=prompt,
            running_message=f"Started with prompt: {prompt}",
            cwd=os.getcwd(),
        )
