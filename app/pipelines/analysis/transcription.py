"""Speech-to-text for recorded messages, upstream of the text analyzer."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any
from uuid import uuid4

from .errors import MalformedResponseError
from .locators import S3_SCHEME, parse_locator
from .poller import JobPoller
from .types import JobProvider, Transcript

logger = logging.getLogger(__name__)

_JOB_NAME_UNSAFE = re.compile(r"[^0-9a-zA-Z._-]")


def parse_transcript(raw: Any) -> Transcript:
    """Pull ``results.transcripts[0].transcript`` out of the Transcribe output."""

    if not isinstance(raw, dict):
        raise MalformedResponseError("Transcription result must be a mapping.")
    document = raw.get("document") or {}
    try:
        text = document["results"]["transcripts"][0]["transcript"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError(f"Transcript document is incomplete: {exc}") from exc
    return Transcript(job_name=str(raw.get("job_name", "")), text=(text or "").strip())


def build_job_name(prefix: str) -> str:
    safe = _JOB_NAME_UNSAFE.sub("-", prefix)[:150]
    return f"{safe}-{uuid4().hex[:12]}"


class Transcriber:
    """Submit ``s3://`` recordings to the speech-to-text provider."""

    def __init__(self, provider: JobProvider, poller: JobPoller) -> None:
        self._provider = provider
        self._poller = poller

    def analyze_async(
        self,
        locator: str,
        *,
        job_prefix: str = "dta",
        key: str | None = None,
    ) -> asyncio.Future:
        parsed = parse_locator(locator, allowed_schemes=(S3_SCHEME,))
        job_name = build_job_name(job_prefix)
        logger.info("Queueing transcription %s for %s", job_name, parsed.raw)
        return self._poller.submit(
            self._provider,
            (parsed.raw, job_name),
            parse_transcript,
            key=key or parsed.raw,
        )


__all__ = ["Transcriber", "build_job_name", "parse_transcript"]
