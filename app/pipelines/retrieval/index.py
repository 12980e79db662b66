"""Similarity index over session messages, analyses and interventions.

Every stored document carries ``sessionId``, ``userId``, ``contentType``
and ``timestamp`` metadata. Matches below the relevance threshold are
dropped, never down-ranked.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol
from uuid import uuid4

import numpy as np

from app.config.settings import settings
from app.pipelines.analysis.types import TextAnalysis
from app.telemetry import increment_retrieval_search

from .store import EmbeddedSegment, SearchMatch, VectorStore

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Relevant historical context:"

CONTENT_MESSAGE = "message"
CONTENT_ANALYSIS = "analysis"
CONTENT_INTERVENTION = "intervention"

DEFAULT_INTERVENTIONS: dict[str, str] = {
    "all-or-nothing thinking": (
        "Look for the middle ground: rate the situation on a 0-100 scale "
        "instead of success or failure."
    ),
    "overgeneralization": (
        "List the specific times the outcome did not happen to test the word 'always'."
    ),
    "mental filter": "Write down three neutral or positive details the filter hid.",
    "disqualifying the positive": (
        "Record one positive event each day and what it says about you."
    ),
    "jumping to conclusions": (
        "Separate facts from guesses and note the evidence for and against the conclusion."
    ),
    "magnification": (
        "Ask how much this will matter in a week, a month and a year."
    ),
    "emotional reasoning": (
        "Name the feeling, then check which facts support or contradict it."
    ),
    "should statements": (
        "Replace 'should' with 'I would prefer' and notice the change in pressure."
    ),
    "labeling": "Describe the behaviour instead of labelling the person.",
    "personalization": (
        "Draw a responsibility pie chart of every factor that contributed."
    ),
}


class Embedder(Protocol):
    async def embed(self, text: str) -> np.ndarray: ...


def chunk_text(text: str, max_chars: int) -> list[str]:
    """Split ``text`` on whitespace into chunks of at most ``max_chars``."""

    cleaned = " ".join((text or "").split())
    if not cleaned:
        return []
    if len(cleaned) <= max_chars:
        return [cleaned]

    chunks: list[str] = []
    current: list[str] = []
    length = 0
    for word in cleaned.split(" "):
        while len(word) > max_chars:
            if current:
                chunks.append(" ".join(current))
                current, length = [], 0
            chunks.append(word[:max_chars])
            word = word[max_chars:]
        extra = len(word) + (1 if current else 0)
        if current and length + extra > max_chars:
            chunks.append(" ".join(current))
            current, length = [], 0
            extra = len(word)
        if word:
            current.append(word)
            length += extra
    if current:
        chunks.append(" ".join(current))
    return chunks


def describe_analysis(analysis: TextAnalysis) -> str:
    distortions = ", ".join(analysis.cognitive_distortions) or "none"
    themes = ", ".join(analysis.key_themes) or "none"
    return (
        f"Emotion: {analysis.primary_emotion}. "
        f"Cognitive distortions: {distortions}. "
        f"Key themes: {themes}."
    )


class ContextIndex:
    def __init__(
        self,
        embedder: Embedder,
        store: VectorStore,
        *,
        relevance_threshold: float | None = None,
        max_results: int | None = None,
        max_chars_per_chunk: int | None = None,
        deletion_enabled: bool | None = None,
    ) -> None:
        cfg = settings.retrieval
        self._embedder = embedder
        self._store = store
        self.relevance_threshold = (
            cfg.relevance_threshold if relevance_threshold is None else relevance_threshold
        )
        self.max_results = max_results or cfg.max_results
        self._max_chars = max_chars_per_chunk or cfg.max_chars_per_chunk
        self._deletion_enabled = cfg.deletion_enabled if deletion_enabled is None else deletion_enabled

    async def index(self, content: str, metadata: Mapping[str, Any] | None = None) -> str:
        """Embed ``content`` chunk by chunk and return the new document id."""

        chunks = chunk_text(content, self._max_chars)
        if not chunks:
            raise ValueError("Cannot index empty content.")

        document_id = str(uuid4())
        base_metadata = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **dict(metadata or {}),
            "documentId": document_id,
        }
        for position, chunk in enumerate(chunks):
            vector = await self._embedder.embed(chunk)
            await self._store.upsert(
                EmbeddedSegment(
                    segment_id=f"{document_id}:{position}",
                    document_id=document_id,
                    text=chunk,
                    vector=vector,
                    metadata=MappingProxyType({**base_metadata, "chunk": position}),
                )
            )
        logger.debug("Indexed document %s in %d chunk(s)", document_id, len(chunks))
        return document_id

    async def search(
        self,
        query: str,
        filters: Mapping[str, Any] | None = None,
        k: int | None = None,
        *,
        exclude: Mapping[str, Any] | None = None,
        purpose: str = "search",
    ) -> list[SearchMatch]:
        if not query or not query.strip():
            return []
        vector = await self._embedder.embed(query)
        matches = await self._store.search(
            vector,
            k=k or self.max_results,
            min_score=self.relevance_threshold,
            filters=filters,
            exclude=exclude,
        )
        increment_retrieval_search(purpose, bool(matches))
        return matches

    async def index_message(
        self,
        session_id: str,
        user_id: str,
        text: str,
        *,
        is_user_message: bool = True,
    ) -> str:
        return await self.index(
            text,
            {
                "sessionId": session_id,
                "userId": user_id,
                "contentType": CONTENT_MESSAGE,
                "messageType": "user" if is_user_message else "system",
            },
        )

    async def index_analysis(
        self,
        session_id: str,
        user_id: str,
        analysis: TextAnalysis,
        *,
        source_message_id: str | None = None,
    ) -> str:
        metadata: dict[str, Any] = {
            "sessionId": session_id,
            "userId": user_id,
            "contentType": CONTENT_ANALYSIS,
            "emotion": analysis.primary_emotion,
            "distortions": ", ".join(analysis.cognitive_distortions),
            "themes": ", ".join(analysis.key_themes),
        }
        if source_message_id:
            metadata["sourceMessageId"] = source_message_id
        return await self.index(describe_analysis(analysis), metadata)

    async def build_context_for_prompt(
        self,
        session_id: str,
        user_id: str,
        current_input: str,
        k: int | None = None,
    ) -> str:
        """Render matches from this user's other sessions as a prompt block.

        Returns an empty string when nothing clears the threshold.
        """

        matches = await self.search(
            current_input,
            {"userId": user_id},
            k,
            exclude={"sessionId": session_id},
            purpose="prompt_context",
        )
        if not matches:
            return ""

        lines = [CONTEXT_HEADER, ""]
        for match in matches:
            origin = f"From session {match.metadata.get('sessionId')}"
            if match.metadata.get("timestamp"):
                origin += f" ({match.metadata['timestamp']})"
            lines.append(f"{origin}:")
            lines.append(match.text)
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"

    async def find_similar_sessions(
        self,
        user_id: str,
        query: str,
        *,
        exclude_session: str | None = None,
        k: int | None = None,
    ) -> list[SearchMatch]:
        """One match per originating session: the longest matching segment."""

        matches = await self.search(
            query,
            {"userId": user_id},
            k,
            exclude={"sessionId": exclude_session} if exclude_session else None,
            purpose="similar_sessions",
        )
        best: dict[str, SearchMatch] = {}
        for match in matches:
            session_id = match.metadata.get("sessionId")
            if session_id is None:
                continue
            current = best.get(session_id)
            if current is None or len(match.text) > len(current.text):
                best[session_id] = match
        return sorted(best.values(), key=lambda m: m.score, reverse=True)

    async def find_relevant_interventions(
        self,
        distortions: Iterable[str],
        k: int | None = None,
    ) -> list[str]:
        labels = [label for label in distortions if label]
        if not labels:
            return []
        matches = await self.search(
            "Therapeutic interventions for: " + ", ".join(labels),
            {"contentType": CONTENT_INTERVENTION},
            k,
            purpose="interventions",
        )
        return [match.text for match in matches]

    async def seed_interventions(
        self,
        interventions: Mapping[str, str] | None = None,
    ) -> list[str]:
        """Index one intervention document per distortion label."""

        document_ids = []
        for distortion, technique in (interventions or DEFAULT_INTERVENTIONS).items():
            document_ids.append(
                await self.index(
                    f"Intervention for {distortion}: {technique}",
                    {"contentType": CONTENT_INTERVENTION, "distortion": distortion},
                )
            )
        logger.info("Seeded %d intervention(s)", len(document_ids))
        return document_ids

    async def find_recurring_patterns(
        self,
        session_id: str,
        user_id: str,
        analysis: TextAnalysis,
    ) -> list[str]:
        """Distortions in ``analysis`` already seen in this user's earlier analyses."""

        if not analysis.cognitive_distortions:
            return []
        matches = await self.search(
            describe_analysis(analysis),
            {"userId": user_id, "contentType": CONTENT_ANALYSIS},
            exclude={"sessionId": session_id},
            purpose="recurring_patterns",
        )
        recurring = []
        for distortion in analysis.cognitive_distortions:
            needle = distortion.lower()
            if any(needle in match.text.lower() for match in matches):
                recurring.append(distortion)
        return recurring

    async def delete(self, document_id: str) -> bool:
        if not self._deletion_enabled:
            logger.info("Index deletion disabled; ignoring delete of %s", document_id)
            return False
        removed = await self._store.delete_document(document_id)
        return removed > 0

    async def delete_user(self, user_id: str) -> int:
        """Remove every segment belonging to ``user_id``."""

        if not self._deletion_enabled:
            logger.info("Index deletion disabled; ignoring purge for user %s", user_id)
            return 0
        removed = await self._store.delete_where({"userId": user_id})
        logger.info("Purged %d segment(s) for user %s", removed, user_id)
        return removed


__all__ = [
    "CONTENT_ANALYSIS",
    "CONTENT_INTERVENTION",
    "CONTENT_MESSAGE",
    "CONTEXT_HEADER",
    "ContextIndex",
    "DEFAULT_INTERVENTIONS",
    "Embedder",
    "chunk_text",
    "describe_analysis",
]
