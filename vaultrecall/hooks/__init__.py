"""
Hooks system for vaultrecall.

Event-driven integration with the hosting agent:
- message_received feeds auto-capture
- before_agent_start feeds auto-recall
"""

from vaultrecall.hooks.service import (
    Hook,
    HookEvent,
    HookResult,
    HookService,
)

__all__ = [
    "Hook",
    "HookEvent",
    "HookResult",
    "HookService",
]
