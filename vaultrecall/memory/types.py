"""Shared data types for the memory engine."""

from dataclasses import dataclass, field
from typing import Any, Literal


CAPTURED_CATEGORIES = ("preference", "project", "personal", "other")

CapturedCategory = Literal["preference", "project", "personal", "other"]
MemorySource = Literal["vault", "workspace", "captured"]

# Prefixes that map to directories on disk
FILE_PREFIXES = ("memory/", "vault/", "extra/")


def source_for_file(file: str) -> MemorySource:
    """Derive the result source from a logical file path."""
    if file.startswith("captured/"):
        return "captured"
    if file.startswith("vault/"):
        return "vault"
    return "workspace"


@dataclass
class MemoryChunk:
    """A line-bounded slice of a source file prepared for indexing."""
    id: int
    file: str
    start_line: int
    end_line: int
    text: str
    hash: str = ""


@dataclass
class CapturedMemory:
    """A fact captured from conversation; lives only in the vector store."""
    id: int
    text: str
    category: CapturedCategory
    captured_at: int  # Epoch milliseconds
    session_key: str | None = None

    @property
    def file(self) -> str:
        return f"captured/{self.category}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for tool results."""
        return {
            "id": str(self.id),
            "text": self.text,
            "category": self.category,
            "capturedAt": self.captured_at,
            "sessionKey": self.session_key,
        }


@dataclass
class MemorySearchResult:
    """One ranked hit returned by search."""
    id: str
    file: str
    start_line: int
    end_line: int
    snippet: str
    score: float
    source: MemorySource
    related: list[str] | None = None
    captured_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for tool results."""
        data: dict[str, Any] = {
            "file": self.file,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "snippet": self.snippet,
            "score": self.score,
            "source": self.source,
        }
        if self.related:
            data["related"] = self.related
        return data


@dataclass
class GraphNode:
    """A file in the link graph with its outgoing and incoming wikilinks."""
    file: str
    links: list[str] = field(default_factory=list)
    backlinks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "links": self.links, "backlinks": self.backlinks}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GraphNode":
        return cls(
            file=data["file"],
            links=list(data.get("links", [])),
            backlinks=list(data.get("backlinks", [])),
        )
