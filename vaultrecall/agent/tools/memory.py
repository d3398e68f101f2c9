"""
Memory tools for agents.

Thin wrappers that expose MemoryEngine operations as function-call
tools. Every tool returns a JSON object; errors are reported in its
`error` field.
"""

import json
from typing import Any

from vaultrecall.agent.tools.base import Tool
from vaultrecall.memory.engine import MemoryEngine
from vaultrecall.memory.types import CAPTURED_CATEGORIES


def _json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


class MemoryTool(Tool):
    """Base for tools backed by a MemoryEngine."""

    def __init__(self, engine: MemoryEngine):
        self.engine = engine


class MemorySearchTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_search"

    @property
    def description(self) -> str:
        return (
            "Mandatory recall step: search the vault, MEMORY.md, memory/*.md and captured "
            "facts before answering questions about prior work, decisions, dates, people, "
            "preferences, or todos. Returns top snippets with path and lines."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to look for"},
                "maxResults": {"type": "integer", "description": "Maximum results (default 5)"},
                "minScore": {"type": "number", "description": "Vector similarity threshold (default 0.5)"},
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> str:
        query = kwargs.get("query")
        if not query:
            return _json({"results": [], "error": "query is required"})
        return _json(await self.engine.memory_search(
            query,
            max_results=kwargs.get("maxResults"),
            min_score=kwargs.get("minScore"),
        ))


class MemoryGetTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_get"

    @property
    def description(self) -> str:
        return (
            "Read lines from an indexed file (MEMORY.md, memory/, vault/, extra/). "
            "Use after memory_search to pull only the needed lines."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Logical path from a search result"},
                "from": {"type": "integer", "description": "1-based first line (default 1)"},
                "lines": {"type": "integer", "description": "Number of lines (default: to end of file)"},
            },
            "required": ["path"],
        }

    async def execute(self, **kwargs: Any) -> str:
        path = kwargs.get("path")
        if not path:
            return _json({"path": "", "text": "", "error": "path is required"})
        return _json(self.engine.memory_get(
            path,
            from_line=int(kwargs.get("from") or 1),
            lines=kwargs.get("lines"),
        ))


class CapturedListTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_captured_list"

    @property
    def description(self) -> str:
        return "List facts captured from conversation."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "category": {"type": "string", "enum": list(CAPTURED_CATEGORIES)},
                "limit": {"type": "integer", "description": "Page size (default 20)"},
                "offset": {"type": "string", "description": "Cursor from a previous page"},
            },
        }

    async def execute(self, **kwargs: Any) -> str:
        return _json(await self.engine.captured_list(
            category=kwargs.get("category"),
            limit=int(kwargs.get("limit") or 20),
            offset=kwargs.get("offset") or None,
        ))


class CapturedDeleteTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_captured_delete"

    @property
    def description(self) -> str:
        return "Delete a captured fact by id."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Id from memory_captured_list"},
            },
            "required": ["id"],
        }

    async def execute(self, **kwargs: Any) -> str:
        return _json(await self.engine.captured_delete(str(kwargs.get("id", ""))))


class CapturedExportTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_captured_export"

    @property
    def description(self) -> str:
        return "Export captured facts to a Markdown note in the vault inbox."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "category": {"type": "string", "enum": list(CAPTURED_CATEGORIES)},
                "limit": {"type": "integer", "description": "Maximum facts (default 100)"},
                "title": {"type": "string", "description": "Note title"},
            },
        }

    async def execute(self, **kwargs: Any) -> str:
        return _json(await self.engine.captured_export(
            category=kwargs.get("category"),
            limit=int(kwargs.get("limit") or 100),
            title=kwargs.get("title"),
        ))


class MemoryOrganizeTool(MemoryTool):

    @property
    def name(self) -> str:
        return "memory_organize"

    @property
    def description(self) -> str:
        return "Find vault notes with no incoming wikilinks and suggest linking them."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "dryRun": {"type": "boolean", "description": "Report only (default true)"},
            },
        }

    async def execute(self, **kwargs: Any) -> str:
        return _json(self.engine.memory_organize(dry_run=kwargs.get("dryRun", True) is not False))


SEARCH_TOOLS = (MemorySearchTool, MemoryGetTool, MemoryOrganizeTool)
CAPTURE_TOOLS = (CapturedListTool, CapturedDeleteTool, CapturedExportTool)


def create_memory_tools(engine: MemoryEngine) -> list[MemoryTool]:
    """Instantiate every memory tool for an engine."""
    return [tool_cls(engine) for tool_cls in SEARCH_TOOLS + CAPTURE_TOOLS]
