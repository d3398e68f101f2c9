"""
Host integration for vaultrecall.

- PluginHost: what a hosting agent framework must provide
- MemoryPlugin: registers the memory tools, hooks and indexer service
- LocalHost: a self-contained host built on ToolRegistry and HookService
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from loguru import logger

from vaultrecall.agent.tools.base import Tool
from vaultrecall.agent.tools.memory import CAPTURE_TOOLS, SEARCH_TOOLS
from vaultrecall.agent.tools.registry import ToolRegistry
from vaultrecall.config.schema import Config
from vaultrecall.hooks.service import HookEvent, HookHandler, HookService
from vaultrecall.memory.engine import MemoryEngine


ServiceCallable = Callable[[], Awaitable[Any]]


class PluginHost(Protocol):
    """The surface a hosting agent exposes to plugins."""

    def register_tool(self, tool: Tool) -> None: ...

    def on(self, event: str, handler: HookHandler) -> Any: ...

    def register_service(self, service_id: str, start: ServiceCallable, stop: ServiceCallable) -> None: ...


class MemoryPlugin:
    """
    Wires a MemoryEngine into a host.

    Features:
    - Search tools (memory_search, memory_get, memory_organize)
    - Captured-fact tools (list, delete, export)
    - before_agent_start hook for auto-recall
    - message_received hook for auto-capture
    - Indexer service (initial index, watcher, shutdown flush)
    """

    id = "vaultrecall"

    def __init__(self, config: Config, engine: MemoryEngine | None = None):
        self.config = config
        self.engine = engine or MemoryEngine(config)

    def register_search(self, host: PluginHost) -> None:
        for tool_cls in SEARCH_TOOLS:
            host.register_tool(tool_cls(self.engine))

    def register_capture(self, host: PluginHost) -> None:
        for tool_cls in CAPTURE_TOOLS:
            host.register_tool(tool_cls(self.engine))

    async def on_before_turn(self, event: dict[str, Any]) -> dict[str, str] | None:
        return await self.engine.before_agent_start(event.get("prompt"))

    async def on_message(self, event: dict[str, Any]) -> dict[str, str] | None:
        return await self.engine.message_received(
            event.get("content"),
            conversation_id=event.get("conversation_id"),
            session_key=event.get("session_key"),
            sender=event.get("from") or event.get("sender"),
        )

    async def start(self) -> bool:
        return await self.engine.start()

    async def stop(self) -> None:
        await self.engine.stop()

    def register(self, host: PluginHost) -> None:
        """Register tools, hooks and the indexer service with a host."""
        self.register_search(host)
        self.register_capture(host)

        if self.config.recall.enabled:
            host.on(HookEvent.BEFORE_AGENT_START.value, self.on_before_turn)
        if self.config.capture.enabled:
            logger.debug("plugin: registering message_received hook for auto-capture")
            host.on(HookEvent.MESSAGE_RECEIVED.value, self.on_message)

        host.register_service(f"{self.id}-indexer", self.start, self.stop)


@dataclass
class _Service:
    id: str
    start: ServiceCallable
    stop: ServiceCallable


class LocalHost:
    """
    Minimal in-process host.

    Used by the CLI and tests to drive a plugin the way an agent
    framework would.
    """

    def __init__(self):
        self.tools = ToolRegistry()
        self.hooks = HookService()
        self._services: list[_Service] = []

    def register_tool(self, tool: Tool) -> None:
        self.tools.register(tool)

    def on(self, event: str, handler: HookHandler) -> str:
        return self.hooks.on(event, handler)

    def register_service(self, service_id: str, start: ServiceCallable, stop: ServiceCallable) -> None:
        self._services.append(_Service(service_id, start, stop))

    async def start_services(self) -> None:
        for service in self._services:
            logger.debug(f"host: starting {service.id}")
            await service.start()

    async def stop_services(self) -> None:
        for service in reversed(self._services):
            logger.debug(f"host: stopping {service.id}")
            await service.stop()

    async def call_tool(self, name: str, **params: Any) -> str:
        return await self.tools.execute(name, params)

    async def before_agent_start(self, prompt: str) -> str | None:
        """Collect the context every before_agent_start hook wants prepended."""
        results = await self.hooks.trigger(HookEvent.BEFORE_AGENT_START.value, {"prompt": prompt})
        blocks = [
            r.response["prepend_context"]
            for r in results
            if r.success and isinstance(r.response, dict) and r.response.get("prepend_context")
        ]
        return "".join(blocks) or None

    async def message_received(
        self,
        content: str,
        conversation_id: str | None = None,
        session_key: str | None = None,
        sender: str | None = None,
    ) -> list[Any]:
        results = await self.hooks.trigger(HookEvent.MESSAGE_RECEIVED.value, {
            "content": content,
            "conversation_id": conversation_id,
            "session_key": session_key,
            "from": sender,
        })
        return [r.response for r in results if r.success]
