"""Control panel backend for agentic coding tools.

Starts, stops and monitors auto-claude, continuous-claude, automaker and
acfs on one host, recording their status in a shared JSON state file.

Can run standalone:
    python -m agentic_dashboard
"""

from agentic_dashboard.config import Config
from agentic_dashboard.dashboard import Dashboard
from agentic_dashboard.server import create_server

__all__ = ["Config", "Dashboard", "create_server"]
