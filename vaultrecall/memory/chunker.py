"""
Chunking for note files.

Splits raw text into overlapping, line-numbered chunks and derives the
deterministic point ids used by the vector store and the lexical index.
"""

import hashlib

from vaultrecall.memory.types import MemoryChunk


MAX_LINE_CHARS = 2000
SNIPPET_MAX_CHARS = 700

# Qdrant numeric ids must survive a JSON round trip: keep them below 2**53
POINT_ID_MASK = (1 << 53) - 1


def generate_point_id(key: str) -> int:
    """
    Map a stable key to an unsigned 53-bit point id.

    Uses the first 8 bytes of the SHA-256 digest (big-endian), masked so
    the id is exactly representable as a JSON number.
    """
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & POINT_ID_MASK


def content_hash(text: str) -> str:
    """SHA-256 hex digest of a chunk's text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def truncate_snippet(text: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """Cap a snippet at max_chars, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def _count_words(text: str) -> int:
    return len(text.split())


def _split_lines(text: str) -> list[tuple[int, str]]:
    """Split text into (line number, segment) pairs, hard-splitting long lines."""
    segments: list[tuple[int, str]] = []
    for number, line in enumerate(text.split("\n"), start=1):
        if len(line) <= MAX_LINE_CHARS:
            segments.append((number, line))
            continue
        for start in range(0, len(line), MAX_LINE_CHARS):
            segments.append((number, line[start:start + MAX_LINE_CHARS]))
    return segments


def _join(segments: list[tuple[int, str]]) -> str:
    """Rebuild chunk text; pieces of one source line are re-joined without a newline."""
    parts: list[str] = []
    previous = None
    for number, piece in segments:
        if parts and number == previous:
            parts[-1] += piece
        else:
            parts.append(piece)
        previous = number
    return "\n".join(parts)


def _overlap_size(segments: list[tuple[int, str]], overlap_words: int) -> int:
    """
    Number of trailing segments to carry into the next chunk.

    Walks backward from the end and picks the count whose cumulative word
    count is closest to overlap_words. Never returns the whole chunk.
    """
    best_count = 0
    best_distance = overlap_words
    total = 0
    for count in range(1, len(segments)):
        total += _count_words(segments[-count][1])
        distance = abs(total - overlap_words)
        if distance <= best_distance:
            best_count, best_distance = count, distance
        if total >= overlap_words:
            break
    return best_count


def chunk_text(
    text: str,
    target_words: int = 400,
    overlap_words: int = 80,
) -> list[MemoryChunk]:
    """
    Split text into overlapping chunks.

    Args:
        text: Raw file content.
        target_words: Word count at which a chunk is emitted.
        overlap_words: Approximate words repeated at the start of the next chunk.

    Returns:
        Chunks with 1-based start/end lines of the original text. Ids,
        file and hash are left for the caller (see prepare_chunks).
    """
    segments = _split_lines(text)
    chunks: list[MemoryChunk] = []
    current: list[tuple[int, str]] = []
    word_count = 0

    for i, segment in enumerate(segments):
        current.append(segment)
        word_count += _count_words(segment[1])

        is_last = i == len(segments) - 1
        if word_count < target_words and not is_last:
            continue

        body = _join(current)
        if body.strip():
            chunks.append(MemoryChunk(
                id=0,
                file="",
                start_line=current[0][0],
                end_line=current[-1][0],
                text=body,
            ))

        keep = 0
        if overlap_words > 0 and not is_last:
            keep = _overlap_size(current, overlap_words)
        current = current[len(current) - keep:]
        word_count = sum(_count_words(piece) for _, piece in current)

    return chunks


def prepare_chunks(
    content: str,
    rel_path: str,
    target_words: int = 400,
    overlap_words: int = 80,
) -> list[MemoryChunk]:
    """Chunk a file and stamp each chunk with its logical path, point id and hash."""
    chunks = chunk_text(content, target_words, overlap_words)
    for chunk in chunks:
        chunk.file = rel_path
        chunk.id = generate_point_id(f"{rel_path}:{chunk.start_line}-{chunk.end_line}")
        chunk.hash = content_hash(chunk.text)
    return chunks
