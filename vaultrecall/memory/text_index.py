"""
Lexical (BM25) index over memory chunks.

A small in-process inverted index:
- Two fields, `text` (boost 2) and `file` (boost 1)
- BM25 scoring with fuzzy term expansion
- Targeted per-file removal
- JSON persistence with a dirty flag
"""

import json
import math
import re
from pathlib import Path
from typing import Any

from loguru import logger

from vaultrecall.memory.types import MemoryChunk, source_for_file


INDEX_VERSION = 1
TOKEN_RE = re.compile(r"[^\W_]+")
FIELD_BOOSTS = {"text": 2.0, "file": 1.0}
FUZZY_WEIGHT = 0.45
STORED_FIELDS = ("id", "file", "startLine", "endLine", "text", "source")


def tokenize(text: str) -> list[str]:
    """Lower-cased alphanumeric runs."""
    return TOKEN_RE.findall(text.lower())


def bm25(
    tf: int,
    doc_len: int,
    avg_len: float,
    df: int,
    num_docs: int,
    k1: float = 1.2,
    b: float = 0.75,
) -> float:
    if tf <= 0 or doc_len <= 0 or avg_len <= 0 or df <= 0:
        return 0.0
    idf = math.log(1.0 + (num_docs - df + 0.5) / (df + 0.5))
    return idf * (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * doc_len / avg_len))


def edit_distance(a: str, b: str, limit: int) -> int:
    """Levenshtein distance, or limit + 1 once it is known to exceed limit."""
    if abs(len(a) - len(b)) > limit:
        return limit + 1
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        if min(current) > limit:
            return limit + 1
        previous = current
    return previous[-1]


class TextIndex:
    """
    BM25 inverted index persisted to `<state_dir>/index.json`.

    Documents are keyed by chunk id; adding a chunk whose id is already
    indexed replaces the old document.
    """

    def __init__(self, state_dir: Path, fuzzy: float = 0.2):
        self.path = Path(state_dir) / "index.json"
        self.fuzzy = fuzzy
        self._documents: dict[int, dict[str, Any]] = {}
        self._postings: dict[str, dict[str, dict[int, int]]] = {f: {} for f in FIELD_BOOSTS}
        self._lengths: dict[str, dict[int, int]] = {f: {} for f in FIELD_BOOSTS}
        self._dirty = False

    def __len__(self) -> int:
        return len(self._documents)

    @property
    def dirty(self) -> bool:
        return self._dirty

    # =========================================================================
    # Documents
    # =========================================================================

    def add(self, chunks: list[MemoryChunk]) -> None:
        """Index chunks, replacing any documents with the same ids."""
        if not chunks:
            return
        for chunk in chunks:
            self._add_document({
                "id": chunk.id,
                "file": chunk.file,
                "startLine": chunk.start_line,
                "endLine": chunk.end_line,
                "text": chunk.text,
                "source": source_for_file(chunk.file),
            })
        self._dirty = True

    def remove_by_file(self, file: str) -> int:
        """Remove every document whose file equals `file` exactly."""
        doomed = [doc_id for doc_id, doc in self._documents.items() if doc["file"] == file]
        for doc_id in doomed:
            self._remove_document(doc_id)
        if doomed:
            self._dirty = True
        return len(doomed)

    def files(self) -> list[str]:
        """Logical files that currently have documents."""
        return list(dict.fromkeys(doc["file"] for doc in self._documents.values()))

    def _add_document(self, doc: dict[str, Any]) -> None:
        doc_id = doc["id"]
        if doc_id in self._documents:
            self._remove_document(doc_id)
        self._documents[doc_id] = doc

        for field in FIELD_BOOSTS:
            tokens = tokenize(str(doc.get(field, "")))
            self._lengths[field][doc_id] = len(tokens)
            postings = self._postings[field]
            for token in tokens:
                docs = postings.setdefault(token, {})
                docs[doc_id] = docs.get(doc_id, 0) + 1

    def _remove_document(self, doc_id: int) -> None:
        doc = self._documents.pop(doc_id, None)
        if doc is None:
            return
        for field in FIELD_BOOSTS:
            self._lengths[field].pop(doc_id, None)
            postings = self._postings[field]
            for token in set(tokenize(str(doc.get(field, "")))):
                docs = postings.get(token)
                if docs is None:
                    continue
                docs.pop(doc_id, None)
                if not docs:
                    del postings[token]

    # =========================================================================
    # Search
    # =========================================================================

    def _expand(self, term: str, postings: dict[str, dict[int, int]]) -> list[tuple[str, float]]:
        """Vocabulary terms matching `term`, exactly or within the fuzzy distance."""
        expansions: list[tuple[str, float]] = []
        if term in postings:
            expansions.append((term, 1.0))

        max_distance = int(self.fuzzy * len(term) + 0.5)
        if max_distance <= 0:
            return expansions

        for candidate in postings:
            if candidate == term:
                continue
            distance = edit_distance(term, candidate, max_distance)
            if distance <= max_distance:
                expansions.append((candidate, FUZZY_WEIGHT * len(term) / (len(term) + distance)))
        return expansions

    def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """
        Rank documents against a free-text query.

        Args:
            query: Query text.
            limit: Maximum number of hits.

        Returns:
            Stored fields of each hit plus `score` and matched `terms`,
            best first. Equal scores keep insertion order.
        """
        terms = list(dict.fromkeys(tokenize(query)))
        if not terms or not self._documents:
            return []

        num_docs = len(self._documents)
        scores: dict[int, float] = {}
        matched: dict[int, set[str]] = {}

        for term in terms:
            for field, boost in FIELD_BOOSTS.items():
                postings = self._postings[field]
                lengths = self._lengths[field]
                avg_len = sum(lengths.values()) / max(len(lengths), 1)
                for candidate, weight in self._expand(term, postings):
                    docs = postings[candidate]
                    for doc_id, tf in docs.items():
                        score = bm25(tf, lengths[doc_id], avg_len, len(docs), num_docs)
                        if score <= 0:
                            continue
                        scores[doc_id] = scores.get(doc_id, 0.0) + score * boost * weight
                        matched.setdefault(doc_id, set()).add(candidate)

        ranked = [doc_id for doc_id in self._documents if doc_id in scores]
        ranked.sort(key=lambda doc_id: scores[doc_id], reverse=True)

        return [
            {**self._documents[doc_id], "score": scores[doc_id], "terms": sorted(matched[doc_id])}
            for doc_id in ranked[:limit]
        ]

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """
        Load the index from disk.

        Accepts the current versioned format and legacy `storedFields`
        snapshots (bare or wrapped in `{"index": ...}`). Anything else is
        logged and the index starts empty.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            return
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"text-index: cannot read {self.path}, starting fresh: {e}")
            return

        documents = self._documents_from(parsed)
        if documents is None:
            logger.warning(f"text-index: unrecognized format in {self.path}, starting fresh")
            return

        for doc in documents:
            try:
                self._add_document(self._normalize(doc))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"text-index: skipping malformed document: {e}")
        logger.debug(f"text-index: loaded {len(self._documents)} documents")

    @staticmethod
    def _documents_from(parsed: Any) -> list[dict[str, Any]] | None:
        if not isinstance(parsed, dict):
            return None
        if parsed.get("version") == INDEX_VERSION and isinstance(parsed.get("documents"), list):
            return parsed["documents"]
        legacy = parsed.get("index", parsed)
        if isinstance(legacy, dict) and isinstance(legacy.get("storedFields"), dict):
            return list(legacy["storedFields"].values())
        return None

    @staticmethod
    def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
        file = str(doc["file"])
        return {
            "id": int(doc["id"]),
            "file": file,
            "startLine": int(doc.get("startLine", 1)),
            "endLine": int(doc.get("endLine", 1)),
            "text": str(doc.get("text", "")),
            "source": doc.get("source") or source_for_file(file),
        }

    def save(self) -> None:
        """Write the index if it changed since the last save."""
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": INDEX_VERSION,
            "documents": [
                {key: doc[key] for key in STORED_FIELDS}
                for doc in self._documents.values()
            ],
        }
        self.path.write_text(json.dumps(data), encoding="utf-8")
        self._dirty = False
