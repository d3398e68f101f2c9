"""Agent tools module."""

from vaultrecall.agent.tools.base import Tool
from vaultrecall.agent.tools.registry import ToolRegistry
from vaultrecall.agent.tools.memory import (
    MemoryTool,
    MemorySearchTool,
    MemoryGetTool,
    CapturedListTool,
    CapturedDeleteTool,
    CapturedExportTool,
    MemoryOrganizeTool,
    create_memory_tools,
)

__all__ = [
    "Tool",
    "ToolRegistry",
    "MemoryTool",
    "MemorySearchTool",
    "MemoryGetTool",
    "CapturedListTool",
    "CapturedDeleteTool",
    "CapturedExportTool",
    "MemoryOrganizeTool",
    "create_memory_tools",
]
