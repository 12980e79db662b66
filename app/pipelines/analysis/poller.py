"""Submit-and-poll engine for job-based analysis providers.

Lifecycle of one job:

1. ``submit`` checks the duplicate policy and schedules the job task.
2. The task calls ``provider.start_job`` and records an ``AnalysisJob``.
3. Every ``poll_interval`` seconds the provider is polled, at most
   ``pool_size`` status checks in flight across all jobs.
4. The first terminal outcome resolves the future and drops the job from
   the active map.

Outcomes: SUCCEEDED resolves with ``parse(raw_result)``. FAILED raises
``ProviderFailureError``. Staying in progress for ``max_attempts`` polls
raises ``JobTimeoutError``. A status missing from the provider's
``status_map`` raises ``UnexpectedJobStateError`` and is not retried.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Literal

from app.config.settings import settings
from app.telemetry import increment_poll, observe_job

from .errors import (
    AnalysisError,
    DuplicateSubmissionError,
    JobTimeoutError,
    ProviderFailureError,
    UnexpectedJobStateError,
)
from .types import AnalysisJob, AnalysisResult, JobProvider, JobStatus

logger = logging.getLogger(__name__)

ResultParser = Callable[[Any], AnalysisResult]
DuplicatePolicy = Literal["allow", "reject"]


class JobPoller:
    """Drive provider jobs to a terminal state on the running event loop."""

    def __init__(
        self,
        *,
        poll_interval: float | None = None,
        pool_size: int | None = None,
        duplicate_policy: DuplicatePolicy | None = None,
    ) -> None:
        self._poll_interval = (
            settings.polling.interval_seconds if poll_interval is None else poll_interval
        )
        self._duplicate_policy: DuplicatePolicy = (
            duplicate_policy or settings.polling.duplicate_policy
        )
        self._pool = asyncio.Semaphore(pool_size or settings.polling.pool_size)
        self._active: dict[str, AnalysisJob] = {}
        self._outstanding_keys: dict[str, int] = {}

    @property
    def active_jobs(self) -> dict[str, AnalysisJob]:
        return dict(self._active)

    def has_outstanding(self, key: str) -> bool:
        return self._outstanding_keys.get(key, 0) > 0

    def submit(
        self,
        provider: JobProvider,
        payload: Any,
        parse: ResultParser,
        *,
        key: str | None = None,
        max_attempts: int | None = None,
    ) -> asyncio.Future:
        """Schedule ``payload`` on ``provider`` and return a future for the parsed result.

        Must be called from a running event loop. Raises
        ``DuplicateSubmissionError`` immediately when the policy is
        ``reject`` and ``key`` already has a job outstanding.
        """

        if key is not None:
            if self._duplicate_policy == "reject" and self.has_outstanding(key):
                raise DuplicateSubmissionError(
                    f"A {provider.name} job for {key!r} is still outstanding."
                )
            if self.has_outstanding(key):
                logger.info("Duplicate %s submission for %s allowed", provider.name, key)
            self._outstanding_keys[key] = self._outstanding_keys.get(key, 0) + 1

        attempts = max_attempts or getattr(provider, "max_attempts", None) or 60
        try:
            return asyncio.ensure_future(
                self._run(provider, payload, parse, key=key, max_attempts=attempts)
            )
        except RuntimeError:
            if key is not None:
                self._release_key(key)
            raise

    async def _run(
        self,
        provider: JobProvider,
        payload: Any,
        parse: ResultParser,
        *,
        key: str | None,
        max_attempts: int,
    ) -> AnalysisResult:
        started = time.perf_counter()
        outcome = "failed"
        try:
            try:
                job_id = await provider.start_job(payload)
            except AnalysisError:
                raise
            except Exception as exc:
                raise ProviderFailureError(
                    f"{provider.name} rejected the job: {exc}", provider=provider.name
                ) from exc

            job = AnalysisJob(
                job_id=job_id,
                provider=provider.name,
                max_attempts=max_attempts,
                poll_interval=self._poll_interval,
                key=key,
            )
            token = f"{provider.name}:{job_id}"
            self._active[token] = job
            logger.info(
                "Submitted %s job %s (key=%s, max_attempts=%d)",
                provider.name,
                job_id,
                key,
                max_attempts,
            )
            try:
                result = await self._poll_until_terminal(provider, job, parse)
            finally:
                self._active.pop(token, None)
            outcome = "succeeded"
            return result
        except JobTimeoutError:
            outcome = "timed_out"
            raise
        except UnexpectedJobStateError:
            outcome = "unexpected_state"
            raise
        finally:
            if key is not None:
                self._release_key(key)
            observe_job(provider.name, outcome, time.perf_counter() - started)

    async def _poll_until_terminal(
        self,
        provider: JobProvider,
        job: AnalysisJob,
        parse: ResultParser,
    ) -> AnalysisResult:
        while True:
            await asyncio.sleep(job.poll_interval)
            job.attempt += 1

            async with self._pool:
                try:
                    status = await provider.get_job_status(job.job_id)
                except AnalysisError:
                    job.status = JobStatus.FAILED
                    raise
                except Exception as exc:
                    job.status = JobStatus.FAILED
                    raise ProviderFailureError(
                        f"Status check for {provider.name} job {job.job_id} failed: {exc}",
                        provider=provider.name,
                        job_id=job.job_id,
                    ) from exc
            increment_poll(provider.name)

            translated = provider.translate_status(status.raw_status)
            if translated is None:
                job.status = JobStatus.FAILED
                logger.error(
                    "%s job %s returned unknown status %r",
                    provider.name,
                    job.job_id,
                    status.raw_status,
                )
                raise UnexpectedJobStateError(status.raw_status, provider=provider.name)

            if translated in (JobStatus.SUBMITTED, JobStatus.IN_PROGRESS):
                job.status = JobStatus.IN_PROGRESS
                if job.attempt >= job.max_attempts:
                    job.status = JobStatus.TIMED_OUT
                    logger.warning(
                        "%s job %s timed out after %d polls",
                        provider.name,
                        job.job_id,
                        job.attempt,
                    )
                    raise JobTimeoutError(
                        f"{provider.name} job {job.job_id} did not finish after "
                        f"{job.attempt} polls",
                        provider=provider.name,
                        job_id=job.job_id,
                    )
                logger.debug(
                    "%s job %s in progress (attempt %d/%d)",
                    provider.name,
                    job.job_id,
                    job.attempt,
                    job.max_attempts,
                )
                continue

            if translated == JobStatus.SUCCEEDED:
                job.status = JobStatus.SUCCEEDED
                logger.info(
                    "%s job %s succeeded after %d polls",
                    provider.name,
                    job.job_id,
                    job.attempt,
                )
                return parse(status.raw_result)

            job.status = translated
            if translated == JobStatus.TIMED_OUT:
                raise JobTimeoutError(
                    status.message or f"{provider.name} job {job.job_id} timed out",
                    provider=provider.name,
                    job_id=job.job_id,
                )
            raise ProviderFailureError(
                status.message or f"{provider.name} job {job.job_id} failed",
                provider=provider.name,
                job_id=job.job_id,
            )

    def _release_key(self, key: str) -> None:
        remaining = self._outstanding_keys.get(key, 0) - 1
        if remaining > 0:
            self._outstanding_keys[key] = remaining
        else:
            self._outstanding_keys.pop(key, None)


__all__ = ["DuplicatePolicy", "JobPoller", "ResultParser"]
