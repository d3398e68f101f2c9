"""
Tests for chunking and point ids.
"""

import hashlib

from vaultrecall.memory.chunker import (
    MAX_LINE_CHARS,
    chunk_text,
    content_hash,
    generate_point_id,
    prepare_chunks,
    truncate_snippet,
)


def _numbered_lines(count: int, words_per_line: int = 10) -> str:
    return "\n".join(
        " ".join(f"w{line}_{i}" for i in range(words_per_line))
        for line in range(1, count + 1)
    )


class TestChunkText:
    """Tests for chunk_text."""

    def test_empty_input(self):
        assert chunk_text("") == []
        assert chunk_text("   \n\n  \t") == []

    def test_short_text_single_chunk(self):
        chunks = chunk_text("hello world\nsecond line")
        assert len(chunks) == 1
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 2
        assert chunks[0].text == "hello world\nsecond line"

    def test_no_overlap_covers_every_line_once(self):
        text = _numbered_lines(100)
        chunks = chunk_text(text, target_words=50, overlap_words=0)

        assert len(chunks) == 20
        assert chunks[0].start_line == 1
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_line == previous.end_line + 1
        assert chunks[-1].end_line == 100

    def test_overlap_shares_lines(self):
        text = _numbered_lines(100)
        chunks = chunk_text(text, target_words=50, overlap_words=20)

        assert len(chunks) > 1
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_line <= previous.end_line
            assert current.start_line > previous.start_line
            shared = previous.text.split("\n")[-(previous.end_line - current.start_line + 1):]
            assert current.text.startswith("\n".join(shared))

    def test_overlap_picks_closest_word_count(self):
        # Lines of 10 words; an 80-word overlap should reuse exactly 8 lines
        text = _numbered_lines(60)
        chunks = chunk_text(text, target_words=200, overlap_words=80)
        assert chunks[1].start_line == chunks[0].end_line - 7

    def test_long_line_keeps_source_line_numbers(self):
        long_line = "x" * (MAX_LINE_CHARS * 2 + 10)
        text = f"first line\n{long_line}\nlast line"
        chunks = chunk_text(text)

        assert len(chunks) == 1
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 3
        assert chunks[0].text == text

    def test_whitespace_only_chunk_skipped(self):
        text = "word " * 10 + "\n" + "\n" * 5
        chunks = chunk_text(text, target_words=10, overlap_words=0)
        assert len(chunks) == 1
        assert chunks[0].start_line == 1


class TestPointIds:
    """Tests for generate_point_id and hashing."""

    def test_deterministic(self):
        assert generate_point_id("vault/a.md:1-10") == generate_point_id("vault/a.md:1-10")
        assert generate_point_id("vault/a.md:1-10") != generate_point_id("vault/a.md:1-11")

    def test_fits_53_bits(self):
        for key in ("a", "b", "vault/Projects/Apollo.md:1-40", "x" * 1000):
            point_id = generate_point_id(key)
            assert 0 <= point_id < 2 ** 53

    def test_matches_sha256_prefix(self):
        digest = hashlib.sha256(b"MEMORY.md:1-5").digest()
        expected = int.from_bytes(digest[:8], "big") & 0x1FFFFFFFFFFFFF
        assert generate_point_id("MEMORY.md:1-5") == expected

    def test_content_hash(self):
        assert content_hash("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_prepare_chunks_stamps_ids(self):
        chunks = prepare_chunks("one two three", "memory/2024-01-01.md")
        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.file == "memory/2024-01-01.md"
        assert chunk.id == generate_point_id("memory/2024-01-01.md:1-1")
        assert chunk.hash == content_hash("one two three")


class TestTruncateSnippet:

    def test_short_text_unchanged(self):
        assert truncate_snippet("short") == "short"

    def test_long_text_truncated(self):
        snippet = truncate_snippet("a" * 800)
        assert snippet == "a" * 700 + "..."

    def test_exact_limit_unchanged(self):
        assert truncate_snippet("b" * 700) == "b" * 700
