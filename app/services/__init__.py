"""Service layer helpers for external integrations."""

from .embeddings import EmbeddingClient, EmbeddingError
from .hume import HumeApiError, HumeProsodyProvider
from .llm_client import BedrockLlmClient, LlmInvocationError
from .rekognition import RekognitionFaceProvider
from .response_contract import (
    BurnoutScoreResponse,
    ResponseContractError,
    SynthesisResponse,
)
from .storage import StorageError, presigned_url, read_json_object, upload_session_asset
from .transcribe import TranscribeJobProvider, TranscriptionError

__all__ = [
    "BedrockLlmClient",
    "BurnoutScoreResponse",
    "EmbeddingClient",
    "EmbeddingError",
    "HumeApiError",
    "HumeProsodyProvider",
    "LlmInvocationError",
    "RekognitionFaceProvider",
    "ResponseContractError",
    "StorageError",
    "SynthesisResponse",
    "TranscribeJobProvider",
    "TranscriptionError",
    "presigned_url",
    "read_json_object",
    "upload_session_asset",
]
