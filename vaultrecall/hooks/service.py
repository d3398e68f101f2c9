"""
Hooks service for vaultrecall.

In-process event dispatch between a host and the memory engine:
- Handlers registered per event
- Parallel execution with per-hook error isolation
"""

import asyncio
import itertools
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger


class HookEvent(str, Enum):
    """Types of events that can trigger hooks."""
    MESSAGE_RECEIVED = "message_received"
    BEFORE_AGENT_START = "before_agent_start"


HookHandler = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass
class Hook:
    """A registered event handler."""
    id: str
    event: str
    handler: HookHandler


@dataclass
class HookResult:
    """Result of hook execution."""
    hook_id: str
    success: bool
    response: Any = None
    error: str = ""
    duration_ms: float = 0.0


class HookService:
    """
    Manages and executes hooks.

    Handlers for one event run concurrently; a failing handler is
    reported as an unsuccessful HookResult and does not affect the rest.
    """

    def __init__(self):
        self._hooks: dict[str, Hook] = {}
        self._ids = itertools.count(1)

    def on(self, event: str, handler: HookHandler) -> str:
        """Register a handler for an event. Returns the hook id."""
        event = event.value if isinstance(event, HookEvent) else event
        hook_id = f"{event}-{next(self._ids)}"
        self._hooks[hook_id] = Hook(id=hook_id, event=event, handler=handler)
        logger.debug(f"Hook added: {hook_id} -> {event}")
        return hook_id

    def list_hooks(self) -> list[Hook]:
        """Registered hooks in registration order."""
        return list(self._hooks.values())

    async def trigger(
        self,
        event: str,
        payload: dict[str, Any],
    ) -> list[HookResult]:
        """
        Trigger all hooks registered for an event.

        Args:
            event: Event type.
            payload: Event payload.

        Returns:
            List of results from triggered hooks, in registration order.
        """
        event = event.value if isinstance(event, HookEvent) else event

        matching_hooks = [h for h in self._hooks.values() if h.event == event]
        if not matching_hooks:
            return []

        logger.debug(f"Event {event} matched {len(matching_hooks)} hooks")

        results = await asyncio.gather(
            *(self._execute_hook(hook, event, payload) for hook in matching_hooks),
            return_exceptions=True,
        )

        processed_results = []
        for hook, result in zip(matching_hooks, results):
            if isinstance(result, BaseException):
                result = HookResult(hook_id=hook.id, success=False, error=str(result))
            processed_results.append(result)

        return processed_results

    async def _execute_hook(
        self,
        hook: Hook,
        event: str,
        payload: dict[str, Any],
    ) -> HookResult:
        """Execute a single hook."""
        start = time.time()
        try:
            response = await hook.handler({"event": event, **payload})
            return HookResult(
                hook_id=hook.id,
                success=True,
                response=response,
                duration_ms=(time.time() - start) * 1000,
            )
        except Exception as e:
            logger.warning(f"Hook {hook.id} failed: {e}")
            return HookResult(
                hook_id=hook.id,
                success=False,
                error=str(e),
                duration_ms=(time.time() - start) * 1000,
            )
