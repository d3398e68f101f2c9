"""
Pytest configuration and shared fixtures for vaultrecall tests.
"""

import math
import sys
import zlib
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from vaultrecall.config.schema import Config
from vaultrecall.memory.chunker import truncate_snippet
from vaultrecall.memory.embeddings import EmbeddingError
from vaultrecall.memory.text_index import tokenize
from vaultrecall.memory.types import MemorySearchResult, source_for_file
from vaultrecall.memory.vector import DuplicateCheck, QdrantError


DIMENSIONS = 32


class FakeEmbeddings:
    """Deterministic bag-of-words embeddings."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []
        self.batch_calls = 0

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * DIMENSIONS
        for token in tokenize(text):
            vec[zlib.crc32(token.encode()) % DIMENSIONS] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    async def embed(self, text: str) -> list[float]:
        if self.fail:
            raise EmbeddingError("Ollama /api/embeddings: 500")
        self.calls.append(text)
        return self.vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls += 1
        return [await self.embed(t) for t in texts]

    async def get_dimensions(self) -> int:
        if self.fail:
            raise EmbeddingError("Ollama /api/embeddings: connection refused")
        return DIMENSIONS

    async def health_check(self) -> None:
        if self.fail:
            raise EmbeddingError("Ollama /api/tags: 500")

    async def close(self) -> None:
        pass


class FakeQdrant:
    """In-memory stand-in for QdrantStore."""

    def __init__(self, fail_search: bool = False):
        self.points: dict[int, dict] = {}
        self.fail_search = fail_search
        self.batch_calls: list[str] = []
        self.deleted_files: list[str] = []
        self.closed = False

    async def health_check(self) -> None:
        pass

    async def ensure_collection(self, vector_size: int) -> None:
        pass

    async def batch_upsert_file(self, file, chunks, embeddings, graph=None, file_text=None):
        if not chunks:
            return
        self.batch_calls.append(file)
        await self.delete_by_file(file, record=False)
        for chunk, vector in zip(chunks, embeddings):
            self.points[chunk.id] = {
                "vector": vector,
                "payload": {
                    "file": chunk.file,
                    "startLine": chunk.start_line,
                    "endLine": chunk.end_line,
                    "text": chunk.text,
                    "source": source_for_file(chunk.file),
                    "links": graph.get_links(chunk.file) if graph else [],
                },
            }

    async def delete_by_file(self, file, record=True):
        if record:
            self.deleted_files.append(file)
        for point_id in [i for i, p in self.points.items() if p["payload"]["file"] == file]:
            del self.points[point_id]

    async def upsert_captured(self, memory, embedding):
        self.points[memory.id] = {
            "vector": embedding,
            "payload": {
                "file": memory.file,
                "startLine": 1,
                "endLine": 1,
                "text": memory.text,
                "category": memory.category,
                "capturedAt": memory.captured_at,
                "sessionKey": memory.session_key,
                "source": "captured",
            },
        }

    def captured(self) -> list[dict]:
        return [p["payload"] for p in self.points.values() if p["payload"]["source"] == "captured"]

    async def list_captured(self, category=None, limit=20, offset=None):
        from vaultrecall.memory.types import CapturedMemory

        items = [
            CapturedMemory(
                id=point_id,
                text=p["payload"]["text"],
                category=p["payload"]["category"],
                captured_at=p["payload"]["capturedAt"],
                session_key=p["payload"]["sessionKey"],
            )
            for point_id, p in self.points.items()
            if p["payload"]["source"] == "captured"
            and (category is None or p["payload"]["category"] == category)
        ]
        start = int(offset or 0)
        page = items[start:start + limit]
        next_offset = start + limit if start + limit < len(items) else None
        return page, next_offset

    async def delete_captured(self, point_id):
        point = self.points.get(point_id)
        if point and point["payload"]["source"] == "captured":
            del self.points[point_id]

    def _score(self, a, b) -> float:
        return sum(x * y for x, y in zip(a, b))

    async def search(self, vector, limit, score_threshold):
        if self.fail_search:
            raise QdrantError("Qdrant POST /collections/test/points/search: 503")
        scored = [
            (self._score(vector, p["vector"]), point_id, p["payload"])
            for point_id, p in self.points.items()
        ]
        scored = [s for s in scored if s[0] >= score_threshold]
        scored.sort(key=lambda s: s[0], reverse=True)
        return [
            MemorySearchResult(
                id=str(point_id),
                file=payload["file"],
                start_line=payload["startLine"],
                end_line=payload["endLine"],
                snippet=truncate_snippet(payload["text"]),
                score=score,
                source=payload["source"],
                captured_at=payload.get("capturedAt"),
            )
            for score, point_id, payload in scored[:limit]
        ]

    async def search_for_duplicates(self, vector, threshold):
        if self.fail_search:
            return DuplicateCheck(exists=False, error="Qdrant unavailable")
        hits = await self.search(vector, 1, threshold)
        if not hits:
            return DuplicateCheck(exists=False)
        return DuplicateCheck(exists=True, score=hits[0].score, text=hits[0].snippet)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def workspace(tmp_path):
    """Create a temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def memory_dir(workspace):
    """Create a memory directory in the workspace."""
    memory = workspace / "memory"
    memory.mkdir()
    return memory


@pytest.fixture
def vault(tmp_path):
    """Create a small vault with linked notes."""
    vault = tmp_path / "vault"
    (vault / "Projects").mkdir(parents=True)
    (vault / "Topics").mkdir()
    (vault / "Projects" / "Apollo.md").write_text(
        "---\ntags: [rocket, launch]\nstatus: active\n---\n"
        "# Apollo\n\nThe Apollo project uses Postgres for telemetry.\n"
        "See [[Databases]] for the schema notes.\n"
    )
    (vault / "Topics" / "Databases.md").write_text(
        "# Databases\n\nPostgres and SQLite notes. Related to [[Apollo]].\n"
    )
    (vault / "Topics" / "Gardening.md").write_text(
        "# Gardening\n\nTomatoes need full sun and regular watering.\n"
    )
    return vault


@pytest.fixture
def state_dir(workspace):
    """Directory for persisted index state."""
    return workspace / ".vaultrecall"


@pytest.fixture
def config(vault, workspace):
    """Engine configuration pointing at the temporary vault and workspace."""
    return Config(vault_path=str(vault), workspace_path=str(workspace))


@pytest.fixture
def embeddings():
    return FakeEmbeddings()


@pytest.fixture
def store():
    return FakeQdrant()
