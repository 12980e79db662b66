"""Media upload endpoint.

Clients upload recordings here first and pass the returned ``s3://``
locator to the burnout or CBT endpoints.
"""

import logging
import mimetypes
from typing import Final, Literal

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from app.controllers.dependencies import AggregatorDep
from app.pipelines.sessions import SessionNotFoundError
from app.services.storage import upload_session_asset

router = APIRouter(prefix="/media", tags=["media"])

logger = logging.getLogger(__name__)

MediaKind = Literal["audio", "video"]

_ALLOWED_CONTENT_TYPES: Final[dict[str, dict[str, str]]] = {
    "audio": {
        "audio/mpeg": "mp3",
        "audio/mp3": "mp3",
        "audio/mp4": "m4a",
        "audio/x-m4a": "m4a",
        "audio/m4a": "m4a",
        "audio/wav": "wav",
        "audio/x-wav": "wav",
        "audio/webm": "webm",
    },
    "video": {
        "video/mp4": "mp4",
        "video/quicktime": "mov",
    },
}

_KIND_FORM = Form(...)
_MEDIA_UPLOAD = File(...)


class MediaUploadResponse(BaseModel):
    locator: str = Field(..., description="s3:// locator to reference the upload in later requests")
    contentType: str


def resolve_content_type(kind: MediaKind, upload: UploadFile) -> tuple[str, str]:
    """Return ``(content_type, extension)``, guessing from the filename when unset."""

    content_type = upload.content_type
    if (not content_type or content_type == "application/octet-stream") and upload.filename:
        guessed_type, _ = mimetypes.guess_type(upload.filename)
        content_type = guessed_type or content_type

    allowed = _ALLOWED_CONTENT_TYPES[kind]
    if content_type not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported {kind} type {content_type!r}; expected one of {', '.join(sorted(allowed))}",
        )
    return content_type, allowed[content_type]


@router.post(
    "/{session_id}",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_media(
    session_id: str,
    aggregator: AggregatorDep,
    kind: MediaKind = _KIND_FORM,
    media_file: UploadFile = _MEDIA_UPLOAD,
) -> MediaUploadResponse:
    if await aggregator.get(session_id) is None:
        raise SessionNotFoundError(session_id)

    content_type, extension = resolve_content_type(kind, media_file)
    data = await media_file.read()
    await media_file.close()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )

    locator = await upload_session_asset(
        session_id,
        data,
        kind=kind,
        extension=extension,
        content_type=content_type,
    )
    logger.info("Stored %s upload for session %s at %s", kind, session_id, locator)
    return MediaUploadResponse(locator=locator, contentType=content_type)
