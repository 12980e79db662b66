"""Amazon Transcribe batch jobs for recorded session audio."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from botocore.exceptions import ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.pipelines.analysis.types import JobProvider, JobStatus, ProviderStatus
from app.services.aws import create_boto3_client
from app.services.storage import read_json_object

logger = logging.getLogger(__name__)

JsonReader = Callable[[str, str], Awaitable[Any]]


class TranscriptionError(RuntimeError):
    """Raised when Amazon Transcribe cannot accept a job."""


class TranscribeJobProvider(JobProvider):
    """Run ``StartTranscriptionJob`` and read the transcript JSON from S3.

    ``start_job`` takes ``(media_uri, job_name)``. Transcribe job names are
    unique per account, so an existing job with the same name is deleted
    before resubmitting.
    """

    name = "transcribe"
    status_map = {
        "QUEUED": JobStatus.SUBMITTED,
        "IN_PROGRESS": JobStatus.IN_PROGRESS,
        "COMPLETED": JobStatus.SUCCEEDED,
        "FAILED": JobStatus.FAILED,
    }

    def __init__(
        self,
        *,
        client=None,
        reader: JsonReader | None = None,
        output_bucket: str | None = None,
        language_code: str | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._client = client or create_boto3_client(
            "transcribe", region_name=settings.s3.region
        )
        self._reader = reader or read_json_object
        self._output_bucket = (
            output_bucket or settings.transcribe.output_bucket or settings.s3.bucket_name
        )
        self._language_code = language_code or settings.transcribe.language_code
        self.max_attempts = max_attempts or settings.polling.transcribe_max_attempts

    @staticmethod
    def output_key(job_name: str) -> str:
        return f"transcripts/{job_name}.json"

    async def start_job(self, payload: tuple[str, str]) -> str:
        media_uri, job_name = payload
        await self._delete_existing(job_name)
        try:
            await run_in_threadpool(
                self._client.start_transcription_job,
                TranscriptionJobName=job_name,
                LanguageCode=self._language_code,
                Media={"MediaFileUri": media_uri},
                OutputBucketName=self._output_bucket,
                OutputKey=self.output_key(job_name),
            )
        except ClientError as exc:
            raise TranscriptionError(f"Transcribe rejected job {job_name}: {exc}") from exc
        return job_name

    async def get_job_status(self, job_id: str) -> ProviderStatus:
        response = await run_in_threadpool(
            self._client.get_transcription_job,
            TranscriptionJobName=job_id,
        )
        job = response.get("TranscriptionJob", {})
        raw_status = job.get("TranscriptionJobStatus", "")
        if raw_status != "COMPLETED":
            return ProviderStatus(raw_status=raw_status, message=job.get("FailureReason"))

        document = await self._reader(self._output_bucket, self.output_key(job_id))
        return ProviderStatus(
            raw_status=raw_status,
            raw_result={"job_name": job_id, "document": document},
        )

    async def _delete_existing(self, job_name: str) -> None:
        try:
            await run_in_threadpool(
                self._client.delete_transcription_job,
                TranscriptionJobName=job_name,
            )
            logger.info("Deleted existing transcription job %s", job_name)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code not in ("BadRequestException", "NotFoundException"):
                raise TranscriptionError(
                    f"Could not clear transcription job {job_name}: {exc}"
                ) from exc


__all__ = ["TranscribeJobProvider", "TranscriptionError"]
