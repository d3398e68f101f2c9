"""Auto-recall: prepend relevant memories to an agent prompt."""

import asyncio

from loguru import logger

from vaultrecall.memory.capture import RECALL_MARKER
from vaultrecall.memory.search import HybridSearch
from vaultrecall.memory.types import MemorySearchResult


def format_recall_block(results: list[MemorySearchResult], snippet_chars: int = 200) -> str:
    """Render results as a `<relevant-memories>` block."""
    lines = []
    for result in results:
        snippet = result.snippet[:snippet_chars]
        if len(result.snippet) > snippet_chars:
            snippet += "..."
        lines.append(f"- [{result.source}/{result.file}] {snippet}")
    body = "\n".join(lines)
    return (
        f"{RECALL_MARKER}\nThe following memories may be relevant:\n"
        f"{body}\n</relevant-memories>\n\n"
    )


class AutoRecall:
    """
    Looks up memories for an outgoing prompt under a hard timeout.

    Never raises: timeouts and dependency failures are logged and the
    turn proceeds without injected context.
    """

    def __init__(
        self,
        search: HybridSearch,
        limit: int = 3,
        min_score: float = 0.4,
        timeout_seconds: float = 3.0,
        min_prompt_chars: int = 10,
        snippet_chars: int = 200,
    ):
        self.search = search
        self.limit = limit
        self.min_score = min_score
        self.timeout_seconds = timeout_seconds
        self.min_prompt_chars = min_prompt_chars
        self.snippet_chars = snippet_chars

    async def build_context(self, prompt: str | None) -> str | None:
        """Return the block to prepend, or None when nothing should be injected."""
        if not prompt or len(prompt) < self.min_prompt_chars:
            return None
        if RECALL_MARKER in prompt:
            return None

        try:
            response = await asyncio.wait_for(
                self.search.search(prompt, self.limit, self.min_score),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("recall: auto-recall timeout (proceeding without memories)")
            return None
        except Exception as e:
            logger.warning(f"recall: auto-recall failed: {e}")
            return None

        if not response.results:
            return None

        logger.debug(f"recall: injecting {len(response.results)} memories")
        return format_recall_block(response.results, self.snippet_chars)
