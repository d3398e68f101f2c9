"""
Hybrid search for vaultrecall memory.

Combines:
- Vector similarity from Qdrant
- BM25 keyword scores from the lexical index
- Related files from the link graph
"""

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from vaultrecall.memory.chunker import truncate_snippet
from vaultrecall.memory.embeddings import OllamaEmbeddings
from vaultrecall.memory.graph import KnowledgeGraph
from vaultrecall.memory.text_index import TextIndex
from vaultrecall.memory.types import MemorySearchResult, source_for_file
from vaultrecall.memory.vector import QdrantStore


@dataclass
class HybridSearchResponse:
    """Fused results plus whether the vector path contributed."""
    results: list[MemorySearchResult] = field(default_factory=list)
    hybrid: bool = True
    error: str | None = None


class HybridSearch:
    """
    Hybrid search combining vector and keyword search.

    Scoring formula:
    combined = (vector_weight * vector_score) + (text_weight * text_score)

    Keyword scores are normalized by the best keyword score of the query.
    When the vector path fails the weights collapse to 0 / 1.
    """

    def __init__(
        self,
        store: QdrantStore,
        embeddings: OllamaEmbeddings,
        text_index: TextIndex,
        graph: KnowledgeGraph,
        vector_weight: float = 0.7,
        text_weight: float = 0.3,
        related_limit: int = 3,
    ):
        self.store = store
        self.embeddings = embeddings
        self.text_index = text_index
        self.graph = graph
        self.vector_weight = vector_weight
        self.text_weight = text_weight
        self.related_limit = related_limit

    async def _vector_search(
        self,
        query: str,
        max_results: int,
        min_score: float,
    ) -> list[MemorySearchResult]:
        vector = await self.embeddings.embed(query)
        return await self.store.search(vector, max_results, min_score)

    def _text_search(self, query: str, max_results: int) -> list[MemorySearchResult]:
        hits = self.text_index.search(query, max(max_results * 4, 10))
        best = max((hit["score"] for hit in hits), default=0.0) or 1.0
        return [
            MemorySearchResult(
                id=str(hit["id"]),
                file=hit["file"],
                start_line=hit.get("startLine", 1),
                end_line=hit.get("endLine", 1),
                snippet=truncate_snippet(hit.get("text", "")),
                score=hit["score"] / best,
                source=hit.get("source") or source_for_file(hit["file"]),
            )
            for hit in hits
        ]

    def _related(self, file: str) -> list[str] | None:
        related = self.graph.get_related(file)
        files = (related["links"] + related["backlinks"])[:self.related_limit]
        return files or None

    async def search(
        self,
        query: str,
        max_results: int = 5,
        min_score: float = 0.5,
    ) -> HybridSearchResponse:
        """
        Perform hybrid search.

        Args:
            query: Search query text.
            max_results: Number of results to return.
            min_score: Similarity threshold for the vector path.

        Returns:
            HybridSearchResponse sorted by fused score.
        """
        vector_task = asyncio.create_task(self._vector_search(query, max_results, min_score))
        try:
            text_results = self._text_search(query, max_results)
            try:
                vector_results = await vector_task
                error = None
            except Exception as e:
                vector_results = []
                error = str(e) or type(e).__name__
                logger.warning(f"search: vector search failed, falling back to text-only: {e!r}")
        finally:
            if not vector_task.done():
                vector_task.cancel()

        vector_weight = 0.0 if error else self.vector_weight
        text_weight = 1.0 if error else self.text_weight

        merged: dict[str, tuple[MemorySearchResult, float, float]] = {}
        for result in vector_results:
            merged[result.id] = (result, result.score, 0.0)
        for result in text_results:
            if result.id in merged:
                existing, vector_score, _ = merged[result.id]
                merged[result.id] = (existing, vector_score, result.score)
            else:
                merged[result.id] = (result, 0.0, result.score)

        fused = []
        for result, vector_score, text_score in merged.values():
            result.score = vector_score * vector_weight + text_score * text_weight
            result.related = self._related(result.file)
            fused.append(result)

        fused.sort(key=lambda r: r.score, reverse=True)
        return HybridSearchResponse(results=fused[:max_results], hybrid=error is None, error=error)
