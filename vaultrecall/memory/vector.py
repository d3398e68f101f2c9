"""
Qdrant vector store client.

Speaks the Qdrant REST API over httpx:
- Collection and payload-index lifecycle
- Atomic per-file replace (filter-delete + upsert in one batch call)
- Captured-fact storage, listing and deletion
- Scored similarity search and duplicate probing
"""

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from vaultrecall.memory.chunker import content_hash, truncate_snippet
from vaultrecall.memory.graph import KnowledgeGraph
from vaultrecall.memory.metadata import build_point_payload, parse_frontmatter
from vaultrecall.memory.types import (
    CapturedMemory,
    MemoryChunk,
    MemorySearchResult,
    source_for_file,
)


class QdrantError(RuntimeError):
    """Raised when Qdrant is unreachable or answers with a non-2xx status."""


@dataclass
class DuplicateCheck:
    """Outcome of a near-duplicate check."""
    exists: bool
    score: float = 0.0
    text: str | None = None
    error: str | None = None


KEYWORD_INDEXES = ("file", "category", "source")
CAPTURED_PAYLOAD = ["text", "category", "capturedAt", "sessionKey"]
SEARCH_PAYLOAD = ["file", "startLine", "endLine", "text", "source", "capturedAt"]


def _file_filter(file: str) -> dict[str, Any]:
    return {"must": [{"key": "file", "match": {"value": file}}]}


class QdrantStore:
    """
    Async client for one Qdrant collection.

    Every mutating call waits for the write to be applied (`wait=true`).
    """

    def __init__(
        self,
        url: str,
        collection: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.collection = collection
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise QdrantError(f"Qdrant {method} {path}: {e}") from e
        if not response.is_success:
            raise QdrantError(f"Qdrant {method} {path}: {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise QdrantError(f"Qdrant {method} {path}: invalid JSON response") from e

    def _path(self, suffix: str = "") -> str:
        return f"/collections/{self.collection}{suffix}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def health_check(self) -> None:
        """Raise QdrantError unless the server answers."""
        await self._request("GET", "/")

    async def ensure_collection(self, vector_size: int) -> None:
        """Create the collection if missing, then make sure payload indexes exist."""
        data = await self._request("GET", self._path("/exists"))
        if not data.get("result", {}).get("exists"):
            logger.info(f"qdrant: creating collection {self.collection} (dim={vector_size})")
            await self._request("PUT", self._path(), {
                "vectors": {"size": vector_size, "distance": "Cosine"},
                # int8 scalar quantization kept in RAM
                "quantization_config": {
                    "scalar": {"type": "int8", "quantile": 0.99, "always_ram": True},
                },
            })
        await self.ensure_payload_indexes()

    async def ensure_payload_indexes(self) -> None:
        """Create payload indexes used for filtering. Qdrant ignores existing ones."""
        for field in KEYWORD_INDEXES:
            await self._request("PUT", self._path("/index"), {
                "field_name": field,
                "field_schema": "keyword",
            })
        await self._request("PUT", self._path("/index"), {
            "field_name": "capturedAt",
            "field_schema": {
                "type": "integer",
                "range": True,
                "lookup": False,
                "is_principal": True,
            },
        })

    # =========================================================================
    # File points
    # =========================================================================

    def _points(
        self,
        chunks: list[MemoryChunk],
        embeddings: list[list[float]],
        graph: KnowledgeGraph | None,
        file_text: str | None,
    ) -> list[dict[str, Any]]:
        # Frontmatter lives at the top of the file, so parse it once
        source_text = file_text if file_text is not None else chunks[0].text
        tags, metadata = parse_frontmatter(source_text)
        points = []
        for chunk, vector in zip(chunks, embeddings):
            links = graph.get_links(chunk.file) if graph else []
            points.append({
                "id": chunk.id,
                "vector": vector,
                "payload": build_point_payload(chunk, links, tags, metadata),
            })
        return points

    async def batch_upsert_file(
        self,
        file: str,
        chunks: list[MemoryChunk],
        embeddings: list[list[float]],
        graph: KnowledgeGraph | None = None,
        file_text: str | None = None,
    ) -> None:
        """
        Replace every point of `file` with the given chunks in one atomic batch.

        Args:
            file: Logical path whose points are replaced.
            chunks: New chunks of the file.
            embeddings: One vector per chunk, same order.
            graph: Link graph used to fill the `links` payload.
            file_text: Full file content for frontmatter parsing.
        """
        if not chunks:
            return
        points = self._points(chunks, embeddings, graph, file_text)
        await self._request("POST", self._path("/points/batch?wait=true"), {
            "operations": [
                {"delete": {"filter": _file_filter(file)}},
                {"upsert": {"points": points}},
            ],
        })

    async def delete_by_file(self, file: str) -> None:
        await self._request("POST", self._path("/points/delete?wait=true"), {
            "filter": _file_filter(file),
        })

    # =========================================================================
    # Captured facts
    # =========================================================================

    async def upsert_captured(self, memory: CapturedMemory, embedding: list[float]) -> None:
        point = {
            "id": memory.id,
            "vector": embedding,
            "payload": {
                "file": memory.file,
                "startLine": 1,
                "endLine": 1,
                "text": memory.text,
                "hash": content_hash(memory.text),
                "category": memory.category,
                "capturedAt": memory.captured_at,
                "sessionKey": memory.session_key,
                "source": "captured",
            },
        }
        await self._request("PUT", self._path("/points?wait=true"), {"points": [point]})

    async def list_captured(
        self,
        category: str | None = None,
        limit: int = 20,
        offset: Any = None,
    ) -> tuple[list[CapturedMemory], Any]:
        """
        Page through captured facts.

        Returns:
            (items, next_offset). next_offset is None on the last page.
        """
        must: list[dict[str, Any]] = [{"key": "source", "match": {"value": "captured"}}]
        if category:
            must.append({"key": "category", "match": {"value": category}})

        body: dict[str, Any] = {
            "limit": limit,
            "filter": {"must": must},
            "with_payload": CAPTURED_PAYLOAD,
            "with_vector": False,
        }
        if offset is not None:
            body["offset"] = offset

        data = await self._request("POST", self._path("/points/scroll"), body)
        result = data.get("result", {})

        items = []
        for point in result.get("points", []):
            payload = point.get("payload") or {}
            text = payload.get("text") or ""
            if not text:
                continue
            items.append(CapturedMemory(
                id=int(point["id"]),
                text=text,
                category=payload.get("category") or "other",
                captured_at=payload.get("capturedAt") or 0,
                session_key=payload.get("sessionKey"),
            ))
        return items, result.get("next_page_offset")

    async def delete_captured(self, point_id: int) -> None:
        """Delete one captured fact. Vault points are never matched."""
        await self._request("POST", self._path("/points/delete?wait=true"), {
            "filter": {
                "must": [
                    {"has_id": [point_id]},
                    {"key": "source", "match": {"value": "captured"}},
                ],
            },
        })

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        vector: list[float],
        limit: int,
        score_threshold: float,
    ) -> list[MemorySearchResult]:
        data = await self._request("POST", self._path("/points/search"), {
            "vector": vector,
            "limit": limit,
            "score_threshold": score_threshold,
            "with_payload": SEARCH_PAYLOAD,
        })

        try:
            return [self._search_hit(hit) for hit in data.get("result") or []]
        except (AttributeError, KeyError, TypeError) as e:
            raise QdrantError(f"Qdrant POST {self._path('/points/search')}: malformed result: {e!r}") from e

    @staticmethod
    def _search_hit(hit: dict[str, Any]) -> MemorySearchResult:
        payload = hit.get("payload") or {}
        file = payload.get("file", "")
        source = "captured" if payload.get("source") == "captured" else source_for_file(file)
        return MemorySearchResult(
            id=str(hit["id"]),
            file=file,
            start_line=payload.get("startLine", 1),
            end_line=payload.get("endLine", 1),
            snippet=truncate_snippet(payload.get("text", "")),
            score=hit.get("score", 0.0),
            source=source,
            captured_at=payload.get("capturedAt"),
        )

    async def search_for_duplicates(self, vector: list[float], threshold: float) -> DuplicateCheck:
        """Look for a stored point at least `threshold` similar. Never raises."""
        try:
            data = await self._request("POST", self._path("/points/search"), {
                "vector": vector,
                "limit": 1,
                "score_threshold": threshold,
                "with_payload": ["text"],
            })
        except QdrantError as e:
            return DuplicateCheck(exists=False, error=str(e))

        try:
            hits = data.get("result") or []
            if not hits:
                return DuplicateCheck(exists=False)
            return DuplicateCheck(
                exists=True,
                score=hits[0].get("score", 0.0),
                text=(hits[0].get("payload") or {}).get("text"),
            )
        except (AttributeError, KeyError, TypeError) as e:
            return DuplicateCheck(exists=False, error=f"malformed result: {e}")
