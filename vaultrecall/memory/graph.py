"""
Wikilink graph.

Tracks `[[target]]` links between notes in both directions and persists
them as a flat JSON map of nodes.
"""

import json
import re
from pathlib import Path

from loguru import logger

from vaultrecall.memory.types import GraphNode


CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
INLINE_CODE_RE = re.compile(r"`[^`]+`")
WIKILINK_RE = re.compile(r"\[\[(.*?)\]\]")


class KnowledgeGraph:
    """
    Bidirectional link graph over indexed files.

    Features:
    - Link/backlink symmetry restored on every mutation
    - Ghost nodes for linked files that do not exist (kept while referenced)
    - Exact, extension-less and basename lookup
    - Dirty-flag gated persistence to graph.json
    """

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / "graph.json"
        self._nodes: dict[str, GraphNode] = {}
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Load the graph from disk. Missing or corrupt files start empty."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._nodes = {
                key: GraphNode.from_dict({**value, "file": value.get("file", key)})
                for key, value in raw.items()
            }
            logger.debug(f"graph: loaded {len(self._nodes)} nodes")
        except (json.JSONDecodeError, OSError, AttributeError, KeyError, TypeError) as e:
            logger.warning(f"graph: cannot read {self.path}, starting fresh: {e}")
            self._nodes = {}

    def save(self) -> None:
        """Write the graph if it changed since the last save."""
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: node.to_dict() for key, node in self._nodes.items()}
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self._dirty = False

    # =========================================================================
    # Mutation
    # =========================================================================

    def extract_links(self, text: str) -> list[str]:
        """
        Extract wikilink targets from text.

        Code blocks and inline code are ignored, as are escaped links.
        `[[Target|Alias]]` yields `Target`.
        """
        cleaned = INLINE_CODE_RE.sub("", CODE_BLOCK_RE.sub("", text))
        links = []
        for match in WIKILINK_RE.finditer(cleaned):
            if match.start() > 0 and cleaned[match.start() - 1] == "\\":
                continue
            target = match.group(1).split("|")[0].strip()
            if target:
                links.append(target)
        return links

    def update_file(self, file: str, text: str) -> list[str]:
        """
        Recompute the outgoing links of a file.

        Returns:
            The file's links, deduplicated in order.
        """
        links = list(dict.fromkeys(self.extract_links(text)))
        existing = self._nodes.get(file)
        old_links = existing.links if existing else []

        self._nodes[file] = GraphNode(
            file=file,
            links=links,
            backlinks=existing.backlinks if existing else [],
        )

        for old in old_links:
            if old not in links:
                self._remove_backlink(old, file)
        for link in links:
            if link not in old_links:
                self._add_backlink(link, file)

        self._dirty = True
        return links

    def remove_file(self, file: str) -> None:
        """Drop a file's outgoing links; keep it as a ghost while others link to it."""
        node = self._nodes.get(file)
        if node is None:
            return

        for link in node.links:
            self._remove_backlink(link, file)

        if node.backlinks:
            node.links = []
        else:
            del self._nodes[file]
        self._dirty = True

    def _add_backlink(self, target: str, source: str) -> None:
        node = self._nodes.setdefault(target, GraphNode(file=target))
        if source not in node.backlinks:
            node.backlinks.append(source)

    def _remove_backlink(self, target: str, source: str) -> None:
        node = self._nodes.get(target)
        if node is None:
            return
        node.backlinks = [b for b in node.backlinks if b != source]

    # =========================================================================
    # Queries
    # =========================================================================

    def _lookup(self, file: str) -> GraphNode | None:
        node = self._nodes.get(file)
        if node is None and file.endswith(".md"):
            node = self._nodes.get(file[:-3])
        if node is None:
            basename = file.rsplit("/", 1)[-1].removesuffix(".md")
            if basename:
                for key, value in self._nodes.items():
                    if key == basename or key.endswith("/" + basename):
                        return value
        return node

    def get_related(self, file: str) -> dict[str, list[str]]:
        """Links and backlinks of a file (exact, then without .md, then by basename)."""
        node = self._lookup(file)
        if node is None:
            return {"links": [], "backlinks": []}
        return {"links": list(node.links), "backlinks": list(node.backlinks)}

    def get_links(self, file: str) -> list[str]:
        return self.get_related(file)["links"]

    def get_orphans(self) -> list[str]:
        """Every node nothing links to."""
        return [file for file, node in self._nodes.items() if not node.backlinks]

    def node(self, file: str) -> GraphNode | None:
        return self._nodes.get(file)

    def files(self) -> list[str]:
        return list(self._nodes)
