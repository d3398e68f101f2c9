"""
vaultrecall - long-term memory for conversational agents.

Indexes a Markdown note vault into a Qdrant vector store, an in-process
BM25 index and a wikilink graph, and serves hybrid search, auto-recall
and auto-capture on top of them.
"""

__version__ = "0.3.0"
__logo__ = "🧠"
