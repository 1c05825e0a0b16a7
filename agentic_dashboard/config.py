from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 3000
    state_file: str = "/tmp/agentic-dashboard-state.json"
    log_dir: str = "/tmp/agentic-logs"
    auto_claude_dir: str = "/root/agentic-tools/Auto-Claude"
    automaker_dir: str = "/root/agentic-tools/automaker"
    automaker_port: int = 3007
    projects_dir: str = "/data/projects"
    # Empty means environment commands run as the server's own user.
    acfs_user: str = "ubuntu"
    ssh_host: str = "intelliagent.site"
    python_bin: str = "python"

    @property
    def auto_claude_backend(self) -> Path:
        return Path(self.auto_claude_dir) / "apps" / "backend"

    @property
    def automaker_url(self) -> str:
        return f"http://localhost:{self.automaker_port}"

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        return cls(
            host=os.getenv("DASHBOARD_HOST", cls.host),
            port=int(os.getenv("DASHBOARD_PORT", str(cls.port))),
            state_file=os.getenv("DASHBOARD_STATE_FILE", cls.state_file),
            log_dir=os.getenv("DASHBOARD_LOG_DIR", cls.log_dir),
            auto_claude_dir=os.getenv("AUTO_CLAUDE_DIR", cls.auto_claude_dir),
            automaker_dir=os.getenv("AUTOMAKER_DIR", cls.automaker_dir),
            automaker_port=int(os.getenv("AUTOMAKER_PORT", str(cls.automaker_port))),
            projects_dir=os.getenv("ACFS_PROJECTS_DIR", cls.projects_dir),
            acfs_user=os.getenv("ACFS_USER", cls.acfs_user),
            ssh_host=os.getenv("ACFS_SSH_HOST", cls.ssh_host),
            python_bin=os.getenv("PYTHON_BIN", cls.python_bin),
        )
