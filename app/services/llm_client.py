"""Thin Bedrock client wrapper for chat-style LLM invocations."""

from __future__ import annotations

import base64
import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class LlmInvocationError(RuntimeError):
    """Raised when the Bedrock invocation fails."""


def decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except ValueError:
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


def create_bedrock_runtime_client():
    """Build a ``bedrock-runtime`` client honouring the optional API key secret."""

    api_key_tuple = None
    if settings.bedrock.api_key:
        api_key_tuple = decode_bedrock_api_key(
            settings.bedrock.api_key.get_secret_value()
        )
    return create_boto3_client(
        "bedrock-runtime",
        region_name=settings.bedrock.region,
        aws_access_key_id=api_key_tuple[0] if api_key_tuple else None,
        aws_secret_access_key=api_key_tuple[1] if api_key_tuple else None,
    )


class BedrockLlmClient:
    """Invoke Amazon Bedrock chat models with the therapy defaults."""

    def __init__(self, *, model_id: str | None = None, client=None) -> None:
        self._model_id = model_id or settings.bedrock.model_id

        if client is not None:
            self._client = client
            return
        try:
            self._client = create_bedrock_runtime_client()
        except Exception as exc:  # pragma: no cover - configuration issue
            logger.warning("Could not initialise Bedrock runtime client: %s", exc)
            self._client = None

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        model_id: str | None = None,
    ) -> str:
        """Run a Bedrock ``converse`` call and return the aggregate text output."""

        target_model_id = model_id or self._model_id
        if not self._client or not target_model_id:
            raise LlmInvocationError("Bedrock client is not configured.")

        inference_cfg = {
            "maxTokens": max_tokens or settings.bedrock.max_tokens,
            "temperature": (
                temperature
                if temperature is not None
                else settings.bedrock.temperature
            ),
            "topP": top_p if top_p is not None else settings.bedrock.top_p,
        }

        def _call() -> str:
            response = self._client.converse(
                modelId=target_model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        try:
            result = await run_in_threadpool(_call)
        except Exception as exc:  # pragma: no cover - external dependency
            raise LlmInvocationError(str(exc)) from exc

        if not result:
            raise LlmInvocationError("Bedrock returned an empty completion.")
        return result

    async def converse(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
    ) -> str:
        """Multi-turn variant: ``messages`` is a list of ``{"role", "text"}`` dicts."""

        if not self._client or not self._model_id:
            raise LlmInvocationError("Bedrock client is not configured.")

        # Bedrock requires strictly alternating roles starting with a user turn.
        bedrock_messages: list[dict] = []
        for message in messages:
            role = "assistant" if message.get("role") == "assistant" else "user"
            text = message.get("text", "")
            if bedrock_messages and bedrock_messages[-1]["role"] == role:
                bedrock_messages[-1]["content"][0]["text"] += "\n" + text
            else:
                bedrock_messages.append({"role": role, "content": [{"text": text}]})
        if bedrock_messages and bedrock_messages[0]["role"] != "user":
            bedrock_messages.insert(0, {"role": "user", "content": [{"text": "(session start)"}]})

        def _call() -> str:
            response = self._client.converse(
                modelId=self._model_id,
                system=[{"text": system_prompt}],
                messages=bedrock_messages,
                inferenceConfig={
                    "maxTokens": max_tokens or settings.bedrock.max_tokens,
                    "temperature": settings.bedrock.temperature,
                    "topP": settings.bedrock.top_p,
                },
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            return "\n".join(
                block.get("text", "") for block in content_blocks if block.get("text")
            ).strip()

        try:
            result = await run_in_threadpool(_call)
        except Exception as exc:  # pragma: no cover - external dependency
            raise LlmInvocationError(str(exc)) from exc

        if not result:
            raise LlmInvocationError("Bedrock returned an empty completion.")
        return result


__all__ = [
    "BedrockLlmClient",
    "LlmInvocationError",
    "create_bedrock_runtime_client",
    "decode_bedrock_api_key",
]
