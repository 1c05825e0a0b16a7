from .acfs import AcfsAdapter
from .auto_claude import AutoClaudeAdapter
from .automaker import AutomakerAdapter
from .base import ToolAdapter
from .continuous_claude import ContinuousClaudeAdapter

__all__ = [
    "AcfsAdapter",
    "AutoClaudeAdapter",
    "AutomakerAdapter",
    "ContinuousClaudeAdapter",
    "ToolAdapter",
]
