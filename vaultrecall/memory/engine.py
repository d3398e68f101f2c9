"""
Memory engine.

Owns every memory component and exposes the host-facing operations:
- Lifecycle: health checks, initial index, file watching, shutdown
- Search and snippet reads
- Captured-fact listing, deletion and export
- Orphan report
- Auto-recall and auto-capture hooks
"""

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

from loguru import logger

from vaultrecall.config.schema import Config
from vaultrecall.memory.capture import AutoCapture, CaptureOutcome, CaptureRateLimiter
from vaultrecall.memory.embeddings import EmbeddingError, OllamaEmbeddings
from vaultrecall.memory.graph import KnowledgeGraph
from vaultrecall.memory.indexer import IndexReport, MemoryIndexer
from vaultrecall.memory.recall import AutoRecall
from vaultrecall.memory.search import HybridSearch
from vaultrecall.memory.text_index import TextIndex
from vaultrecall.memory.types import CAPTURED_CATEGORIES, FILE_PREFIXES
from vaultrecall.memory.vector import QdrantError, QdrantStore
from vaultrecall.memory.watcher import Debouncer, VaultWatcher


class PathAccessError(PermissionError):
    """Raised when a logical path points outside the indexed sources."""


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MemoryEngine:
    """
    Hybrid memory over a Markdown vault and captured facts.

    Every operation returns a plain dict; failures are reported in an
    `error` field instead of being raised to the caller.
    """

    def __init__(
        self,
        config: Config,
        store: QdrantStore | None = None,
        embeddings: OllamaEmbeddings | None = None,
    ):
        self.config = config
        self.store = store or QdrantStore(
            config.qdrant_url,
            config.collection,
            timeout=config.http_timeout,
        )
        self.embeddings = embeddings or OllamaEmbeddings(
            config.ollama_url,
            config.embedding_model,
            timeout=config.http_timeout,
        )
        self.text_index = TextIndex(config.state_dir)
        self.graph = KnowledgeGraph(config.state_dir)

        self.indexer = MemoryIndexer(
            config, self.store, self.embeddings, self.text_index, self.graph
        )
        self.search = HybridSearch(
            self.store,
            self.embeddings,
            self.text_index,
            self.graph,
            vector_weight=config.search.vector_weight,
            text_weight=config.search.text_weight,
            related_limit=config.search.related_limit,
        )
        self.limiter = CaptureRateLimiter(
            window_seconds=config.capture.window_seconds,
            max_per_window=config.capture.max_per_window,
        )
        self.capture = AutoCapture(
            self.store,
            self.embeddings,
            self.limiter,
            dup_threshold=config.capture.dup_threshold,
        )
        self.recall = AutoRecall(
            self.search,
            limit=config.recall.limit,
            min_score=config.recall.min_score,
            timeout_seconds=config.recall.timeout_seconds,
            min_prompt_chars=config.recall.min_prompt_chars,
            snippet_chars=config.recall.snippet_chars,
        )

        self.debouncer = Debouncer(config.watcher.debounce_ms / 1000, self.trigger_index)
        self.watcher: VaultWatcher | None = None
        self._index_task: asyncio.Task | None = None
        self._cleanup_task: asyncio.Task | None = None
        self.ready = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def health_check(self) -> bool:
        """Check Qdrant and Ollama. Logs the failure and returns False if either is down."""
        try:
            await self.store.health_check()
            logger.info(f"engine: Qdrant OK at {self.config.qdrant_url}")
        except QdrantError as e:
            logger.error(f"engine: Qdrant not reachable at {self.config.qdrant_url}: {e}")
            return False

        try:
            await self.embeddings.health_check()
            logger.info(
                f"engine: Ollama OK at {self.config.ollama_url}, "
                f'model "{self.config.embedding_model}" available'
            )
        except EmbeddingError as e:
            logger.error(f"engine: Ollama check failed at {self.config.ollama_url}: {e}")
            return False
        return True

    def load(self) -> None:
        """Load the persisted lexical index and link graph."""
        self.text_index.load()
        self.graph.load()

    def watch_paths(self) -> list[Path]:
        """Indexed roots that currently exist."""
        workspace = self.config.workspace_dir
        candidates = [
            self.config.vault_dir,
            workspace / "MEMORY.md",
            workspace / "memory",
            *(root for _, root in self.config.extra_roots()),
        ]
        paths = []
        for path in candidates:
            if path.exists():
                paths.append(path)
            else:
                logger.debug(f"engine: skipping missing watch path {path}")
        return paths

    async def start(self) -> bool:
        """
        Start the engine.

        Returns:
            True when the engine is serving, False when a dependency or
            the vault is unavailable.
        """
        features = [
            name for name, on in (
                ("auto-recall", self.config.recall.enabled),
                ("auto-capture", self.config.capture.enabled),
            ) if on
        ]
        logger.info(
            f"engine: starting (vault: {self.config.vault_dir}, "
            f"collection: {self.config.collection}, features: [{', '.join(features) or 'none'}])"
        )

        if not await self.health_check():
            return False

        self.load()

        if self.config.auto_index:
            if not self.config.vault_dir.is_dir():
                logger.error(f"engine: vault missing or inaccessible: {self.config.vault_dir}")
                return False

            self.trigger_index()

            if self.config.watcher.enabled:
                paths = self.watch_paths()
                if paths:
                    self.watcher = VaultWatcher(paths, self._on_changes)
                    self.watcher.start()
                else:
                    logger.warning("engine: no valid paths to watch")

        if self.config.capture.enabled:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

        self.ready = True
        return True

    async def stop(self) -> None:
        """Stop watching, finish any in-flight pass and flush state."""
        self.debouncer.cancel()
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        if self.watcher is not None:
            await self.watcher.stop()
            self.watcher = None
        self.debouncer.cancel()

        if self._index_task is not None:
            await self._index_task
            self._index_task = None

        self.text_index.save()
        self.graph.save()
        await self.close()
        self.ready = False
        logger.info("engine: stopped")

    async def close(self) -> None:
        """Close the Qdrant and Ollama HTTP clients."""
        await self.store.close()
        await self.embeddings.close()

    def _on_changes(self, changes: set) -> None:
        self.debouncer.schedule()

    def trigger_index(self) -> asyncio.Task | None:
        """Launch an indexing pass in the background unless one is running."""
        if self.indexer.in_progress or (self._index_task is not None and not self._index_task.done()):
            logger.debug("engine: indexing already in progress")
            return None
        self._index_task = asyncio.create_task(self.indexer.run())
        return self._index_task

    async def run_index(self) -> IndexReport | None:
        """Run one indexing pass in the foreground."""
        return await self.indexer.run()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.capture.cleanup_interval_seconds)
            self.limiter.cleanup()

    def status(self) -> dict[str, Any]:
        return {
            "vault": str(self.config.vault_dir),
            "workspace": str(self.config.workspace_dir),
            "collection": self.config.collection,
            "documents": len(self.text_index),
            "files": len(self.text_index.files()),
            "graph_nodes": len(self.graph.files()),
            "indexing": self.indexer.in_progress,
            "watching": self.watcher is not None and self.watcher.running,
        }

    # =========================================================================
    # Search & read
    # =========================================================================

    async def memory_search(
        self,
        query: str,
        max_results: int | None = None,
        min_score: float | None = None,
    ) -> dict[str, Any]:
        """Hybrid search over vault, workspace memory and captured facts."""
        max_results = max_results if max_results is not None else self.config.search.max_results
        min_score = min_score if min_score is not None else self.config.search.min_score

        try:
            response = await self.search.search(query, max_results, min_score)
        except Exception as e:
            logger.error(f"engine: search error: {e}")
            return {"results": [], "error": str(e)}

        data: dict[str, Any] = {
            "results": [r.to_dict() for r in response.results],
            "provider": "ollama",
            "model": self.config.embedding_model,
            "hybrid": response.hybrid,
        }
        if response.error:
            data["embedding_failed"] = True
            data["fallback_mode"] = "text-only"
            data["error"] = response.error
        return data

    def resolve_path(self, rel_path: str) -> Path:
        """
        Map a logical path to a file on disk.

        Raises:
            PathAccessError: If the path is outside the indexed sources.
        """
        if not (rel_path == "MEMORY.md" or rel_path.startswith(FILE_PREFIXES)):
            raise PathAccessError("Access denied: path outside indexed sources")

        logical = PurePosixPath(rel_path)
        if logical.is_absolute() or ".." in logical.parts or "\\" in rel_path:
            raise PathAccessError("Access denied: path escapes indexed sources")

        parts = logical.parts
        if parts[0] == "vault":
            root, rest = self.config.vault_dir, parts[1:]
        elif parts[0] == "extra":
            roots = dict(self.config.extra_roots())
            try:
                root = roots[int(parts[1])]
            except (IndexError, ValueError, KeyError):
                raise PathAccessError("Unknown extra path index") from None
            rest = parts[2:]
            if root.is_file():
                if rest != (root.name,):
                    raise PathAccessError("Access denied: path outside indexed sources")
                return root
        else:
            root, rest = self.config.workspace_dir, parts

        full = root.joinpath(*rest).resolve()
        if not full.is_relative_to(root.resolve()):
            raise PathAccessError("Access denied: path escapes indexed sources")
        return full

    def memory_get(self, path: str, from_line: int = 1, lines: int | None = None) -> dict[str, Any]:
        """Read a line range from an indexed file."""
        if path.startswith("captured/"):
            return {
                "path": path,
                "text": "(captured memory - stored in vector DB only)",
                "note": "Use memory_search to find captured memories",
            }

        try:
            full = self.resolve_path(path)
            content = full.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return {"path": path, "text": "", "error": str(e)}

        all_lines = content.split("\n")
        start = min(max(0, from_line - 1), len(all_lines))
        end = min(len(all_lines), start + lines) if lines else len(all_lines)
        end = max(end, start)
        return {
            "path": path,
            "from": from_line,
            "lines": end - start,
            "text": "\n".join(all_lines[start:end]),
        }

    # =========================================================================
    # Captured facts
    # =========================================================================

    def _check_category(self, category: str | None) -> None:
        if category is not None and category not in CAPTURED_CATEGORIES:
            raise ValueError(
                f"Unknown category {category!r}; expected one of {', '.join(CAPTURED_CATEGORIES)}"
            )

    async def captured_list(
        self,
        category: str | None = None,
        limit: int = 20,
        offset: Any = None,
    ) -> dict[str, Any]:
        try:
            self._check_category(category)
            items, next_offset = await self.store.list_captured(category, limit, offset or None)
        except (QdrantError, ValueError) as e:
            return {"items": [], "error": str(e)}
        return {"items": [item.to_dict() for item in items], "next_offset": next_offset}

    async def captured_delete(self, point_id: str) -> dict[str, Any]:
        try:
            await self.store.delete_captured(int(point_id))
        except (QdrantError, ValueError) as e:
            return {"id": point_id, "deleted": False, "error": str(e)}
        return {"id": point_id, "deleted": True}

    async def captured_export(
        self,
        category: str | None = None,
        limit: int = 100,
        title: str | None = None,
    ) -> dict[str, Any]:
        """Write captured facts to a Markdown digest in the vault inbox."""
        try:
            self._check_category(category)
            items, _ = await self.store.list_captured(category, limit)

            inbox_name = self.config.organize.inbox_dir
            inbox = self.config.vault_dir / inbox_name
            inbox.mkdir(parents=True, exist_ok=True)

            now = datetime.now(timezone.utc)
            timestamp = re.sub(r"[:.]", "-", _iso(now))
            title = re.sub(r"[\\/]", "-", (title or "").strip())
            filename = f"{title or 'captured-memories'}-{timestamp}.md"

            lines = [
                f"# {title or 'Captured memories'}",
                "",
                f"- Exported: {_iso(now)}",
                f"- Count: {len(items)}",
                "",
            ]
            for item in items:
                date = (
                    _iso(datetime.fromtimestamp(item.captured_at / 1000, tz=timezone.utc))
                    if item.captured_at else ""
                )
                lines.append(f"- **{item.category}** ({date}) {item.text}")

            (inbox / filename).write_text("\n".join(lines) + "\n", encoding="utf-8")
        except (QdrantError, ValueError, OSError) as e:
            return {"error": str(e)}

        logger.info(f"engine: exported {len(items)} captured memories to {inbox_name}/{filename}")
        return {"path": f"vault/{inbox_name}/{filename}", "count": len(items)}

    # =========================================================================
    # Organize
    # =========================================================================

    def memory_organize(self, dry_run: bool = True) -> dict[str, Any]:
        """Report notes nothing links to, excluding journal, session and captured paths."""
        exclude = self.config.organize.exclude
        orphans = [
            file for file in self.graph.get_orphans()
            if not any(fragment in file for fragment in exclude)
        ]
        return {
            "orphans": orphans,
            "count": len(orphans),
            "dry_run": dry_run,
            "note": "These files have no incoming links. Consider linking them from an Index note.",
        }

    # =========================================================================
    # Hooks
    # =========================================================================

    async def before_agent_start(self, prompt: str | None) -> dict[str, str] | None:
        """Auto-recall: context to prepend to the prompt, if any."""
        if not self.config.recall.enabled:
            return None
        context = await self.recall.build_context(prompt)
        if context is None:
            return None
        return {"prepend_context": context}

    async def message_received(
        self,
        content: str | None,
        conversation_id: str | None = None,
        session_key: str | None = None,
        sender: str | None = None,
    ) -> dict[str, str] | None:
        """Auto-capture: run the capture pipeline on an inbound message."""
        if not self.config.capture.enabled or not content:
            return None
        try:
            outcome = await self.capture.handle_message(
                content,
                conversation_id=conversation_id,
                session_key=session_key,
                sender=sender,
            )
        except Exception as e:
            logger.warning(f"engine: auto-capture failed: {e}")
            outcome = CaptureOutcome.FAILED
        return {"outcome": outcome.value}
