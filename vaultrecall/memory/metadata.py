"""
Note metadata extraction.

Pulls the lightweight structure out of Markdown notes that gets attached
to every indexed chunk:
- Frontmatter fields and tags
- Header lines (used as extra tags)
- A coarse category inferred from the logical path
"""

import json
import re
from typing import Any

from vaultrecall.memory.types import MemoryChunk, source_for_file


FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---", re.DOTALL)
HEADER_RE = re.compile(r"^#+\s+(.+?)$", re.MULTILINE)
BLOCK_ITEM_RE = re.compile(r"^\s*-\s+(.*)$")

CORE_FILES = ("MEMORY.md", "SOUL.md", "USER.md")


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _clean_item(value: str) -> str:
    return value.strip().strip("'\"").strip()


def _parse_list(value: str) -> list[Any]:
    """Parse an inline `[a, b]` value, as JSON when possible."""
    try:
        parsed = json.loads(value)
        if isinstance(parsed, list):
            return parsed
    except json.JSONDecodeError:
        pass
    inner = value.strip()[1:]
    if inner.endswith("]"):
        inner = inner[:-1]
    return [_clean_item(part) for part in inner.split(",") if _clean_item(part)]


def parse_frontmatter(text: str) -> tuple[list[str], dict[str, Any]]:
    """
    Parse a leading `---` frontmatter block.

    Args:
        text: Full note content.

    Returns:
        (tags, metadata). Both are empty when the note has no frontmatter.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return [], {}

    tags: list[str] = []
    metadata: dict[str, Any] = {}
    block_key: str | None = None

    for line in match.group(1).split("\n"):
        item = BLOCK_ITEM_RE.match(line)
        if block_key and item:
            value = _clean_item(item.group(1))
            metadata.setdefault(block_key, []).append(value)
            if block_key == "tags":
                tags.append(value)
            continue
        block_key = None

        key, sep, rest = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        value = rest.strip()

        if not value:
            # A YAML block list may follow
            block_key = key
            continue

        if value.startswith("["):
            items = _parse_list(value)
            metadata[key] = items
            if key == "tags":
                tags.extend(str(t).strip() for t in items)
        elif value in ("true", "false"):
            metadata[key] = value == "true"
        else:
            metadata[key] = value
            if key == "tags":
                tags.extend(_clean_item(t) for t in value.split(","))

    return _dedupe(tags), metadata


def extract_headers(text: str) -> list[str]:
    """Header lines, lower-cased, with punctuation removed."""
    return [
        re.sub(r"[^a-z0-9\s-]", "", m.group(1).strip().lower())
        for m in HEADER_RE.finditer(text)
    ]


def infer_category(path: str) -> str:
    """Coarse category for a logical path (first rule that matches wins)."""
    if path.startswith("vault/"):
        if "Journal" in path:
            return "journal"
        if "Projects" in path:
            return "project"
        if "Topics" in path:
            return "knowledge"
        if "People" in path:
            return "person"
        return "knowledge"
    if path.startswith("memory/"):
        return "session"
    if path in CORE_FILES:
        return "core"
    return "other"


def build_point_payload(
    chunk: MemoryChunk,
    links: list[str],
    tags: list[str],
    metadata: dict[str, Any],
) -> dict[str, Any]:
    """
    Build the vector-store payload for one chunk.

    Args:
        chunk: Chunk with file, lines, text and hash set.
        links: Wikilinks of the whole file.
        tags: Frontmatter tags of the whole file.
        metadata: Frontmatter fields of the whole file.
    """
    return {
        "file": chunk.file,
        "startLine": chunk.start_line,
        "endLine": chunk.end_line,
        "text": chunk.text,
        "hash": chunk.hash,
        "tags": _dedupe(list(tags) + extract_headers(chunk.text)),
        "links": _dedupe(list(links)),
        "category": infer_category(chunk.file),
        "metadata": metadata,
        "source": source_for_file(chunk.file),
    }
