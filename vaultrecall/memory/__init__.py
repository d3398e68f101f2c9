"""
Hybrid memory system for vaultrecall.

Provides:
- Chunking and metadata extraction for Markdown notes
- Qdrant vector store and Ollama embedding clients
- BM25 lexical index and wikilink graph
- Indexing orchestrator with file watching
- Hybrid search (vector + keyword + graph)
- Auto-capture and auto-recall
"""

from vaultrecall.memory.types import (
    MemoryChunk,
    CapturedMemory,
    MemorySearchResult,
    GraphNode,
)
from vaultrecall.memory.chunker import (
    chunk_text,
    generate_point_id,
    truncate_snippet,
)
from vaultrecall.memory.graph import KnowledgeGraph
from vaultrecall.memory.text_index import TextIndex
from vaultrecall.memory.vector import (
    QdrantStore,
    QdrantError,
    DuplicateCheck,
)
from vaultrecall.memory.embeddings import (
    OllamaEmbeddings,
    EmbeddingError,
)
from vaultrecall.memory.indexer import (
    MemoryIndexer,
    IndexReport,
)
from vaultrecall.memory.search import (
    HybridSearch,
    HybridSearchResponse,
)
from vaultrecall.memory.capture import (
    AutoCapture,
    CaptureOutcome,
    CaptureRateLimiter,
    should_capture,
    detect_category,
)
from vaultrecall.memory.recall import AutoRecall
from vaultrecall.memory.engine import (
    MemoryEngine,
    PathAccessError,
)

__all__ = [
    "MemoryChunk",
    "CapturedMemory",
    "MemorySearchResult",
    "GraphNode",
    "chunk_text",
    "generate_point_id",
    "truncate_snippet",
    "KnowledgeGraph",
    "TextIndex",
    "QdrantStore",
    "QdrantError",
    "DuplicateCheck",
    "OllamaEmbeddings",
    "EmbeddingError",
    "MemoryIndexer",
    "IndexReport",
    "HybridSearch",
    "HybridSearchResponse",
    "AutoCapture",
    "CaptureOutcome",
    "CaptureRateLimiter",
    "should_capture",
    "detect_category",
    "AutoRecall",
    "MemoryEngine",
    "PathAccessError",
]
