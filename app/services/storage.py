"""S3 storage helpers for session media and provider output."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.services.aws import create_boto3_client


class StorageError(RuntimeError):
    """Raised when S3 asset persistence fails."""


_s3_client = create_boto3_client("s3", region_name=settings.s3.region)

_PRESIGN_EXPIRY_SECONDS = 3600


async def upload_session_asset(
    session_id: str,
    data: bytes,
    *,
    kind: str,
    extension: str,
    content_type: str,
) -> str:
    """Upload raw media under the session prefix and return its ``s3://`` locator."""

    if not data:
        raise StorageError(f"{kind} payload for upload was empty.")
    bucket = settings.s3.bucket_name
    if not bucket:
        raise StorageError("S3 bucket name is not configured.")

    object_key = f"sessions/{session_id}/{kind}-{uuid4().hex}.{extension.lstrip('.')}"
    try:
        await run_in_threadpool(
            _s3_client.put_object,
            Bucket=bucket,
            Key=object_key,
            Body=data,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to upload session asset: {exc}") from exc

    return f"s3://{bucket}/{object_key}"


async def presigned_url(bucket: str, key: str) -> str:
    """Return a time-limited HTTPS URL that external providers can fetch."""

    try:
        return await run_in_threadpool(
            _s3_client.generate_presigned_url,
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=_PRESIGN_EXPIRY_SECONDS,
        )
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to presign s3://{bucket}/{key}: {exc}") from exc


async def read_json_object(bucket: str, key: str) -> Any:
    """Download and decode a JSON document written by a provider job."""

    try:
        response = await run_in_threadpool(_s3_client.get_object, Bucket=bucket, Key=key)
        body = await run_in_threadpool(response["Body"].read)
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to read s3://{bucket}/{key}: {exc}") from exc

    try:
        return json.loads(body)
    except ValueError as exc:
        raise StorageError(f"s3://{bucket}/{key} is not valid JSON") from exc


__all__ = [
    "StorageError",
    "presigned_url",
    "read_json_object",
    "upload_session_asset",
]
