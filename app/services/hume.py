"""Hume batch API client for voice prosody analysis."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import httpx

from app.config.settings import settings
from app.pipelines.analysis.types import JobProvider, JobStatus, ProviderStatus
from app.services.storage import presigned_url

logger = logging.getLogger(__name__)


class HumeApiError(RuntimeError):
    """Raised when the Hume API rejects a request or answers with junk."""


class HumeProsodyProvider(JobProvider):
    """Submit prosody jobs for public audio URLs and fetch their predictions."""

    name = "hume"
    status_map = {
        "QUEUED": JobStatus.SUBMITTED,
        "IN_PROGRESS": JobStatus.IN_PROGRESS,
        "DONE": JobStatus.SUCCEEDED,
        "COMPLETE": JobStatus.SUCCEEDED,
        "COMPLETED": JobStatus.SUCCEEDED,
        "FAILED": JobStatus.FAILED,
    }

    def __init__(
        self,
        *,
        api_key: str | None = None,
        endpoint: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        presign: Callable[[str, str], Awaitable[str]] | None = None,
        max_attempts: int | None = None,
    ) -> None:
        secret = settings.hume.api_key
        self._api_key = api_key or (secret.get_secret_value() if secret else None)
        self._endpoint = (endpoint or settings.hume.endpoint).rstrip("/")
        self._transport = transport
        self._presign = presign or presigned_url
        self.max_attempts = max_attempts or settings.polling.audio_max_attempts

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            raise HumeApiError("HUME_API_KEY is not configured.")
        return httpx.AsyncClient(
            headers={"X-Hume-Api-Key": self._api_key},
            timeout=settings.hume.request_timeout_seconds,
            transport=self._transport,
        )

    async def start_job(self, payload: str) -> str:
        url = payload
        if payload.startswith("s3://"):
            bucket, _, key = payload[len("s3://"):].partition("/")
            url = await self._presign(bucket, key)

        body = {"urls": [url], "models": {"prosody": {}}}
        async with self._client() as client:
            try:
                response = await client.post(self._endpoint, json=body)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                raise HumeApiError(
                    f"Hume rejected job submission ({exc.response.status_code}): "
                    f"{exc.response.text[:200]}"
                ) from exc
            except ValueError as exc:
                raise HumeApiError("Hume job submission returned invalid JSON") from exc

        job_id = data.get("job_id") if isinstance(data, dict) else None
        if not job_id:
            raise HumeApiError(f"Could not extract job id from Hume response: {data!r}")
        return str(job_id)

    async def get_job_status(self, job_id: str) -> ProviderStatus:
        async with self._client() as client:
            try:
                response = await client.get(f"{self._endpoint}/{job_id}")
                response.raise_for_status()
                details = response.json()
            except httpx.HTTPStatusError as exc:
                raise HumeApiError(
                    f"Hume status check failed ({exc.response.status_code})"
                ) from exc
            except ValueError as exc:
                raise HumeApiError("Hume status check returned invalid JSON") from exc

            state = details.get("state", {}) if isinstance(details, dict) else {}
            raw_status = str(state.get("status", ""))
            if self.translate_status(raw_status) != JobStatus.SUCCEEDED:
                return ProviderStatus(raw_status=raw_status, message=state.get("message"))

            predictions = await self._fetch_predictions(client, job_id)
        return ProviderStatus(raw_status=raw_status, raw_result=predictions)

    async def _fetch_predictions(self, client: httpx.AsyncClient, job_id: str) -> Any:
        try:
            response = await client.get(f"{self._endpoint}/{job_id}/predictions")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise HumeApiError(
                f"Fetching Hume predictions failed ({exc.response.status_code})"
            ) from exc
        except ValueError as exc:
            raise HumeApiError("Hume predictions were not valid JSON") from exc


__all__ = ["HumeApiError", "HumeProsodyProvider"]
