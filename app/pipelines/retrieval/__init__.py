"""Context retrieval: embed, store and search prior session content."""

from .index import (
    CONTEXT_HEADER,
    DEFAULT_INTERVENTIONS,
    ContextIndex,
    Embedder,
    chunk_text,
    describe_analysis,
)
from .store import EmbeddedSegment, InMemoryVectorStore, SearchMatch, VectorStore

__all__ = [
    "CONTEXT_HEADER",
    "DEFAULT_INTERVENTIONS",
    "ContextIndex",
    "EmbeddedSegment",
    "Embedder",
    "InMemoryVectorStore",
    "SearchMatch",
    "VectorStore",
    "chunk_text",
    "describe_analysis",
]
