"""Vector store implementations.

``InMemoryVectorStore`` is always available.  ``ChromaVectorStore`` needs the
optional ``chromadb`` extra and is imported from
``ragkit.providers.vector_store.chromadb_store`` where needed.
"""

from ragkit.providers.vector_store.memory_store import InMemoryVectorStore

__all__ = ["InMemoryVectorStore"]
