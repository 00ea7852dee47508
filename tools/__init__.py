"""Tools module for external commands.

Provides tool abstractions for:
- Shell scripts (extension install/upgrade hooks)
- Helm (chart repository index refresh, chart fetch)
"""

from .base import BaseTool, ToolResult, ToolStatus
from .helm_tool import HelmClient
from .shell_tool import ScriptRunner

__all__ = [
    "BaseTool",
    "ToolResult",
    "ToolStatus",
    "HelmClient",
    "ScriptRunner",
]
