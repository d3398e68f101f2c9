"""Ollama embedding client."""

from typing import Any

import httpx
from loguru import logger


class EmbeddingError(RuntimeError):
    """Raised when the embedding service fails or the model is missing."""


def _same_model(available: str, wanted: str) -> bool:
    # Ollama reports untagged models as "name:latest"
    if available == wanted:
        return True
    return available.removesuffix(":latest") == wanted.removesuffix(":latest")


class OllamaEmbeddings:
    """
    Text embeddings from an Ollama server.

    Features:
    - Single embeds via /api/embeddings
    - Bulk embeds via /api/embed, falling back to sequential single calls
    - Dimension lookup cached per instance
    - Health check that verifies the model is pulled
    """

    def __init__(
        self,
        url: str,
        model: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.model = model
        self._dimensions: int | None = None
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama {path}: {e}") from e
        if not response.is_success:
            raise EmbeddingError(f"Ollama {path}: {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingError(f"Ollama {path}: invalid JSON response") from e

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        data = await self._request("POST", "/api/embeddings", {"model": self.model, "prompt": text})
        embedding = data.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("Ollama /api/embeddings: response has no embedding")
        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed many texts, preserving order.

        Tries the bulk endpoint first. Any failure or a count mismatch falls
        back to one /api/embeddings call per text, issued in sequence.
        """
        if not texts:
            return []
        if len(texts) == 1:
            return [await self.embed(texts[0])]

        try:
            data = await self._request("POST", "/api/embed", {"model": self.model, "input": texts})
            embeddings = data.get("embeddings")
            if isinstance(embeddings, list) and len(embeddings) == len(texts):
                return embeddings
            logger.debug("ollama: bulk embed returned an unexpected shape, embedding one by one")
        except EmbeddingError as e:
            logger.debug(f"ollama: bulk embed unavailable ({e}), embedding one by one")

        return [await self.embed(text) for text in texts]

    async def get_dimensions(self) -> int:
        """Vector size of the model, looked up once."""
        if self._dimensions is None:
            self._dimensions = len(await self.embed("test"))
        return self._dimensions

    async def health_check(self) -> None:
        """Raise EmbeddingError unless the server answers and the model is available."""
        data = await self._request("GET", "/api/tags")
        names = [m.get("name", "") for m in data.get("models") or []]
        if not any(_same_model(name, self.model) for name in names):
            available = ", ".join(names) or "none"
            raise EmbeddingError(f'Ollama model "{self.model}" not found. Available: {available}')
