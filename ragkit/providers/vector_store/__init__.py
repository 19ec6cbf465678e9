"""Vector store providers.

ChromaDBProvider stores pre-computed embeddings on local disk, one
collection per agent (``agent_{agent_id}``), searched by cosine similarity.
"""

from ragkit.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
