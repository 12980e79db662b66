"""Vector storage backends for the context index."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np


@dataclass(frozen=True)
class EmbeddedSegment:
    """One embedded chunk of a stored document."""

    segment_id: str
    document_id: str
    text: str
    vector: np.ndarray = field(repr=False, compare=False)
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class SearchMatch:
    segment: EmbeddedSegment
    score: float

    @property
    def text(self) -> str:
        return self.segment.text

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self.segment.metadata


def _matches(metadata: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    return all(metadata.get(key) == value for key, value in (filters or {}).items())


def _excluded(metadata: Mapping[str, Any], exclude: Mapping[str, Any] | None) -> bool:
    return any(metadata.get(key) == value for key, value in (exclude or {}).items())


class VectorStore(ABC):
    @abstractmethod
    async def upsert(self, segment: EmbeddedSegment) -> None: ...

    @abstractmethod
    async def search(
        self,
        vector: np.ndarray,
        *,
        k: int,
        min_score: float,
        filters: Mapping[str, Any] | None = None,
        exclude: Mapping[str, Any] | None = None,
    ) -> list[SearchMatch]:
        """Best ``k`` matches scoring at least ``min_score``, best first.

        ``filters`` keep only segments whose metadata equals every given
        value; ``exclude`` drops segments matching any given value. Both are
        applied before the top-k cut.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> int: ...

    @abstractmethod
    async def delete_where(self, filters: Mapping[str, Any]) -> int: ...

    @abstractmethod
    async def count(self) -> int: ...


class InMemoryVectorStore(VectorStore):
    """Brute-force cosine similarity over segments kept in a dict."""

    def __init__(self) -> None:
        self._segments: dict[str, EmbeddedSegment] = {}

    async def upsert(self, segment: EmbeddedSegment) -> None:
        self._segments[segment.segment_id] = segment

    async def search(self, vector, *, k, min_score, filters=None, exclude=None):
        candidates = [
            segment
            for segment in self._segments.values()
            if _matches(segment.metadata, filters) and not _excluded(segment.metadata, exclude)
        ]
        if not candidates or k <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []

        matrix = np.vstack([np.asarray(s.vector, dtype=np.float32) for s in candidates])
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0.0] = np.inf
        scores = (matrix @ query) / (norms * query_norm)

        ranked = sorted(
            (
                SearchMatch(segment=segment, score=float(score))
                for segment, score in zip(candidates, scores)
                if score >= min_score
            ),
            key=lambda match: match.score,
            reverse=True,
        )
        return ranked[:k]

    async def delete_document(self, document_id: str) -> int:
        doomed = [sid for sid, s in self._segments.items() if s.document_id == document_id]
        for segment_id in doomed:
            del self._segments[segment_id]
        return len(doomed)

    async def delete_where(self, filters: Mapping[str, Any]) -> int:
        if not filters:
            return 0
        doomed = [sid for sid, s in self._segments.items() if _matches(s.metadata, filters)]
        for segment_id in doomed:
            del self._segments[segment_id]
        return len(doomed)

    async def count(self) -> int:
        return len(self._segments)


__all__ = ["EmbeddedSegment", "InMemoryVectorStore", "SearchMatch", "VectorStore"]
