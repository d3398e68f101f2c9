"""
Indexing orchestrator.

Walks the vault, the workspace memory files and any extra paths, and
keeps the vector store, the lexical index and the link graph in step
with what is on disk.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from vaultrecall.config.schema import Config
from vaultrecall.memory.chunker import prepare_chunks
from vaultrecall.memory.embeddings import EmbeddingError, OllamaEmbeddings
from vaultrecall.memory.graph import KnowledgeGraph
from vaultrecall.memory.text_index import TextIndex
from vaultrecall.memory.vector import QdrantError, QdrantStore


def find_markdown_files(root: Path, unreadable: list[Path] | None = None) -> list[Path]:
    """
    Recursively list `.md` files under root, skipping hidden entries.

    Raises OSError when root itself cannot be listed. Subdirectories that
    cannot be listed are logged and appended to `unreadable`.
    """
    files: list[Path] = []
    for entry in sorted(root.iterdir()):
        if entry.name.startswith("."):
            continue
        if entry.is_dir() and not entry.is_symlink():
            try:
                files.extend(find_markdown_files(entry, unreadable))
            except OSError as e:
                logger.warning(f"indexer: cannot list {entry}: {e}")
                if unreadable is not None:
                    unreadable.append(entry)
        elif entry.is_file() and entry.suffix == ".md":
            files.append(entry)
    return files


@dataclass
class IndexReport:
    """Summary of one indexing pass."""
    files: int = 0
    chunks: int = 0
    failed: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)
    unlisted: list[str] = field(default_factory=list)  # Prefixes whose directory could not be listed
    error: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": self.files,
            "chunks": self.chunks,
            "failed": self.failed,
            "pruned": self.pruned,
            "unlisted": self.unlisted,
            "error": self.error,
            "durationSeconds": round(self.duration_seconds, 3),
        }


class MemoryIndexer:
    """
    Runs indexing passes over every configured root.

    Roots are processed in order: vault (required), MEMORY.md, memory/,
    then each extra path. Only one pass runs at a time; a pass requested
    while another is in flight returns None.
    """

    def __init__(
        self,
        config: Config,
        store: QdrantStore,
        embeddings: OllamaEmbeddings,
        text_index: TextIndex,
        graph: KnowledgeGraph,
        chunk_words: int = 400,
        overlap_words: int = 80,
    ):
        self.config = config
        self.store = store
        self.embeddings = embeddings
        self.text_index = text_index
        self.graph = graph
        self.chunk_words = chunk_words
        self.overlap_words = overlap_words
        self._running = False

    @property
    def in_progress(self) -> bool:
        return self._running

    async def index_file(self, path: Path, rel_path: str) -> int:
        """
        Index one file under its logical path.

        Args:
            path: File on disk.
            rel_path: Logical path, e.g. `vault/Projects/Foo.md`.

        Returns:
            Number of chunks written.
        """
        content = path.read_text(encoding="utf-8")
        chunks = prepare_chunks(content, rel_path, self.chunk_words, self.overlap_words)

        self.graph.update_file(rel_path, content)

        if not chunks:
            # The file was emptied: drop whatever was indexed for it
            if self.text_index.remove_by_file(rel_path):
                await self.store.delete_by_file(rel_path)
            return 0

        self.text_index.remove_by_file(rel_path)
        self.text_index.add(chunks)

        vectors = await self.embeddings.embed_batch([c.text for c in chunks])
        await self.store.batch_upsert_file(rel_path, chunks, vectors, self.graph, content)
        return len(chunks)

    async def _index_one(self, path: Path, rel_path: str, report: IndexReport) -> None:
        report.seen.add(rel_path)
        try:
            report.chunks += await self.index_file(path, rel_path)
            report.files += 1
        except Exception as e:
            report.failed.append(rel_path)
            logger.warning(f"indexer: failed to index {rel_path}: {e}")

    async def index_directory(self, root: Path, prefix: str, report: IndexReport | None = None) -> int:
        """
        Index every markdown file under root. Returns the chunk count.

        Raises OSError when root itself cannot be listed.
        """
        report = report if report is not None else IndexReport()
        before = report.chunks
        unreadable: list[Path] = []
        for path in find_markdown_files(root, unreadable):
            rel_path = prefix + path.relative_to(root).as_posix()
            await self._index_one(path, rel_path, report)
        report.unlisted.extend(prefix + d.relative_to(root).as_posix() + "/" for d in unreadable)
        return report.chunks - before

    async def _index_optional_directory(self, root: Path, prefix: str, report: IndexReport) -> None:
        try:
            await self.index_directory(root, prefix, report)
        except OSError as e:
            report.unlisted.append(prefix)
            logger.warning(f"indexer: cannot list {root}: {e}")

    async def _prune(self, stale: set[str], report: IndexReport) -> None:
        """Remove files that were indexed earlier but are gone now."""
        for rel_path in sorted(stale):
            try:
                await self.store.delete_by_file(rel_path)
            except QdrantError as e:
                logger.warning(f"indexer: failed to prune {rel_path}: {e}")
                continue
            self.text_index.remove_by_file(rel_path)
            self.graph.remove_file(rel_path)
            report.pruned.append(rel_path)

    async def run(self) -> IndexReport | None:
        """Run a full indexing pass, or return None if one is already running."""
        if self._running:
            logger.debug("indexer: pass already in progress, skipping")
            return None
        self._running = True

        report = IndexReport()
        started = time.monotonic()
        try:
            vault = self.config.vault_dir
            if not vault.is_dir():
                report.error = f"Vault path not found: {vault}"
                logger.error(f"indexer: {report.error}")
                return report

            logger.debug("indexer: pass started")
            dimensions = await self.embeddings.get_dimensions()
            await self.store.ensure_collection(dimensions)

            known = set(self.text_index.files())

            try:
                await self.index_directory(vault, "vault/", report)
            except OSError as e:
                report.error = f"Vault not readable: {vault}: {e}"
                logger.error(f"indexer: {report.error}")
                return report

            workspace = self.config.workspace_dir
            memory_file = workspace / "MEMORY.md"
            if memory_file.is_file():
                await self._index_one(memory_file, "MEMORY.md", report)
            memory_dir = workspace / "memory"
            if memory_dir.is_dir():
                await self._index_optional_directory(memory_dir, "memory/", report)

            for index, root in self.config.extra_roots():
                if root.is_file() and root.suffix == ".md":
                    await self._index_one(root, f"extra/{index}/{root.name}", report)
                elif root.is_dir():
                    await self._index_optional_directory(root, f"extra/{index}/", report)

            missing = known - report.seen
            # Files under a directory that could not be listed are kept as they are
            kept = {f for f in missing if f.startswith(tuple(report.unlisted))}
            report.failed.extend(sorted(kept))
            await self._prune(missing - kept, report)

            self.text_index.save()
            self.graph.save()
            logger.info(
                f"indexer: indexed {report.chunks} chunks from {report.files} files"
                + (f", pruned {len(report.pruned)}" if report.pruned else "")
            )
        except (QdrantError, EmbeddingError, OSError) as e:
            report.error = str(e)
            logger.error(f"indexer: pass failed: {e}")
        finally:
            report.duration_seconds = time.monotonic() - started
            self._running = False

        return report
