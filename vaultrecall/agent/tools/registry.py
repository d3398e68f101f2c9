"""Tool registry for the memory tools a host exposes."""

import json
from typing import Any

from loguru import logger

from vaultrecall.agent.tools.base import Tool


class ToolRegistry:
    """
    Registry for agent tools.

    Holds tools by name and dispatches calls to them.
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.debug(f"Replacing tool: {tool.name}")
        self._tools[tool.name] = tool

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions in OpenAI format."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any]) -> str:
        """
        Execute a tool by name.

        Args:
            name: Tool name.
            params: Tool parameters.

        Returns:
            Tool result as a JSON string. Unknown tools, missing required
            parameters and unexpected failures come back as `{"error": ...}`.
        """
        tool = self._tools.get(name)
        if tool is None:
            return json.dumps({"error": f"Tool '{name}' not found"})

        missing = tool.missing_params(params)
        if missing:
            return json.dumps({"error": f"Missing required parameter(s) for {name}: {', '.join(missing)}"})

        try:
            return await tool.execute(**params)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return json.dumps({"error": f"Error executing {name}: {e}"})
