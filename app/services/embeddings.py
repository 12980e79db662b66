"""Bedrock Titan text embeddings."""

from __future__ import annotations

import json
import logging

import numpy as np
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.services.llm_client import create_bedrock_runtime_client

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Raised when the embedding model cannot be invoked."""


class EmbeddingClient:
    """Turn text into unit-normalised vectors with ``invoke_model``."""

    def __init__(self, *, model_id: str | None = None, client=None) -> None:
        self._model_id = model_id or settings.bedrock.embedding_model_id
        if client is not None:
            self._client = client
            return
        try:
            self._client = create_bedrock_runtime_client()
        except Exception as exc:  # pragma: no cover - configuration issue
            logger.warning("Could not initialise Bedrock embedding client: %s", exc)
            self._client = None

    async def embed(self, text: str) -> np.ndarray:
        if not self._client:
            raise EmbeddingError("Bedrock embedding client is not configured.")
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text.")

        body = json.dumps({"inputText": text, "normalize": True})

        def _call() -> list[float]:
            response = self._client.invoke_model(
                modelId=self._model_id,
                body=body,
                contentType="application/json",
                accept="application/json",
            )
            payload = json.loads(response["body"].read())
            return payload["embedding"]

        try:
            values = await run_in_threadpool(_call)
        except Exception as exc:  # pragma: no cover - external dependency
            raise EmbeddingError(str(exc)) from exc

        vector = np.asarray(values, dtype=np.float32)
        norm = float(np.linalg.norm(vector))
        return vector / norm if norm else vector


__all__ = ["EmbeddingClient", "EmbeddingError"]
