"""
Tests for the wikilink graph.
"""

import json

import pytest

from vaultrecall.memory.graph import KnowledgeGraph


@pytest.fixture
def graph(state_dir):
    return KnowledgeGraph(state_dir)


def _assert_symmetric(graph: KnowledgeGraph) -> None:
    for file in graph.files():
        node = graph.node(file)
        for link in node.links:
            assert file in graph.node(link).backlinks
        for backlink in node.backlinks:
            assert file in graph.node(backlink).links


class TestExtractLinks:
    """Tests for wikilink extraction."""

    def test_plain_and_alias(self, graph):
        assert graph.extract_links("See [[Alpha]] and [[Beta|the beta]].") == ["Alpha", "Beta"]

    def test_code_ignored(self, graph):
        text = "```\n[[InFence]]\n```\nInline `[[InCode]]` and [[Real]]"
        assert graph.extract_links(text) == ["Real"]

    def test_escaped_and_empty(self, graph):
        assert graph.extract_links(r"\[[Escaped]] [[ ]] [[Kept]]") == ["Kept"]


class TestGraphMutation:
    """Link/backlink symmetry across updates."""

    def test_update_creates_backlinks(self, graph):
        graph.update_file("vault/A.md", "[[B]] [[C]] [[B]]")

        assert graph.node("vault/A.md").links == ["B", "C"]
        assert graph.node("B").backlinks == ["vault/A.md"]
        assert graph.node("C").backlinks == ["vault/A.md"]
        _assert_symmetric(graph)

    def test_update_removes_stale_backlinks(self, graph):
        graph.update_file("vault/A.md", "[[B]] [[C]]")
        graph.update_file("vault/A.md", "[[C]] [[D]]")

        assert graph.node("B").backlinks == []
        assert graph.node("C").backlinks == ["vault/A.md"]
        assert graph.node("D").backlinks == ["vault/A.md"]
        _assert_symmetric(graph)

    def test_remove_file_without_backlinks(self, graph):
        graph.update_file("vault/A.md", "[[B]]")
        graph.remove_file("vault/A.md")

        assert graph.node("vault/A.md") is None
        assert graph.node("B").backlinks == []

    def test_remove_file_keeps_ghost(self, graph):
        graph.update_file("vault/A.md", "[[vault/B.md]]")
        graph.update_file("vault/B.md", "[[C]]")
        graph.remove_file("vault/B.md")

        ghost = graph.node("vault/B.md")
        assert ghost is not None
        assert ghost.links == []
        assert ghost.backlinks == ["vault/A.md"]
        assert graph.node("C").backlinks == []

    def test_orphans_have_no_backlinks(self, graph):
        graph.update_file("vault/A.md", "[[B]]")
        graph.update_file("vault/B.md", "no links")

        orphans = graph.get_orphans()
        assert "vault/A.md" in orphans
        assert "B" not in orphans
        for file in orphans:
            assert graph.node(file).backlinks == []


class TestGetRelated:
    """Lookup falls back from exact to extension-less to basename."""

    def test_exact(self, graph):
        graph.update_file("vault/A.md", "[[B]]")
        assert graph.get_related("vault/A.md") == {"links": ["B"], "backlinks": []}

    def test_strip_extension(self, graph):
        graph.update_file("vault/A.md", "[[Projects/Apollo]]")
        related = graph.get_related("Projects/Apollo.md")
        assert related["backlinks"] == ["vault/A.md"]

    def test_basename(self, graph):
        graph.update_file("vault/A.md", "[[Apollo]]")
        related = graph.get_related("vault/Projects/Apollo.md")
        assert related["backlinks"] == ["vault/A.md"]

    def test_unknown(self, graph):
        assert graph.get_related("vault/Nope.md") == {"links": [], "backlinks": []}


class TestGraphPersistence:

    def test_save_and_load(self, graph, state_dir):
        graph.update_file("vault/A.md", "[[B]]")
        graph.save()
        assert not graph.dirty

        loaded = KnowledgeGraph(state_dir)
        loaded.load()
        assert loaded.node("vault/A.md").links == ["B"]
        assert loaded.node("B").backlinks == ["vault/A.md"]

    def test_save_skipped_when_clean(self, graph):
        graph.save()
        assert not graph.path.exists()

    def test_corrupt_file_starts_fresh(self, graph, state_dir):
        state_dir.mkdir(parents=True)
        graph.path.write_text("{not json")
        graph.load()
        assert graph.files() == []

    def test_saved_format_is_flat_map(self, graph):
        graph.update_file("vault/A.md", "[[B]]")
        graph.save()
        data = json.loads(graph.path.read_text())
        assert data["B"] == {"file": "B", "links": [], "backlinks": ["vault/A.md"]}
