"""Amazon Rekognition face-detection jobs for vlog emotion analysis."""

from __future__ import annotations

import logging
from typing import Any

from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.pipelines.analysis.types import JobProvider, JobStatus, ProviderStatus
from app.services.aws import create_boto3_client

logger = logging.getLogger(__name__)

_MAX_RESULTS_PER_PAGE = 1000


class RekognitionFaceProvider(JobProvider):
    """Start ``StartFaceDetection`` jobs and read back every detected face.

    ``start_job`` expects an ``(bucket, key)`` pair; the video adapter does
    the locator validation before anything reaches this class.
    """

    name = "rekognition"
    status_map = {
        "IN_PROGRESS": JobStatus.IN_PROGRESS,
        "SUCCEEDED": JobStatus.SUCCEEDED,
        "FAILED": JobStatus.FAILED,
    }

    def __init__(self, *, client=None, max_attempts: int | None = None) -> None:
        self._client = client or create_boto3_client(
            "rekognition", region_name=settings.s3.region
        )
        self.max_attempts = max_attempts or settings.polling.video_max_attempts

    async def start_job(self, payload: tuple[str, str]) -> str:
        bucket, key = payload
        response = await run_in_threadpool(
            self._client.start_face_detection,
            Video={"S3Object": {"Bucket": bucket, "Name": key}},
            FaceAttributes="ALL",
        )
        job_id = response["JobId"]
        logger.debug("Rekognition job %s started for s3://%s/%s", job_id, bucket, key)
        return job_id

    async def get_job_status(self, job_id: str) -> ProviderStatus:
        response = await run_in_threadpool(
            self._client.get_face_detection,
            JobId=job_id,
            MaxResults=_MAX_RESULTS_PER_PAGE,
        )
        raw_status = response.get("JobStatus", "")
        if raw_status != "SUCCEEDED":
            return ProviderStatus(
                raw_status=raw_status,
                message=response.get("StatusMessage"),
            )

        faces: list[dict[str, Any]] = list(response.get("Faces", []))
        next_token = response.get("NextToken")
        while next_token:
            page = await run_in_threadpool(
                self._client.get_face_detection,
                JobId=job_id,
                MaxResults=_MAX_RESULTS_PER_PAGE,
                NextToken=next_token,
            )
            faces.extend(page.get("Faces", []))
            next_token = page.get("NextToken")

        return ProviderStatus(raw_status=raw_status, raw_result=faces)


__all__ = ["RekognitionFaceProvider"]
