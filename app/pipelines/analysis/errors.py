"""Exception hierarchy for the multimodal analysis pipeline.

Validation errors are raised synchronously to whoever submitted the work.
Provider failures and timeouts travel through the job future and end up as
in-band error strings on the session response entry.
"""

from __future__ import annotations


class AnalysisError(RuntimeError):
    """Base class for every analysis pipeline failure."""


class AnalysisValidationError(AnalysisError, ValueError):
    """Input or provider output failed validation; nothing is retried."""


class InvalidLocatorError(AnalysisValidationError):
    """Resource locator is missing or uses an unsupported scheme."""


class MalformedResponseError(AnalysisValidationError):
    """A provider or model answered with something we cannot parse."""


class ProviderFailureError(AnalysisError):
    """An external job reached a FAILED state or the provider call errored."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        job_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.job_id = job_id


class JobTimeoutError(ProviderFailureError):
    """A job stayed in progress past its attempt budget."""


class UnexpectedJobStateError(AnalysisError):
    """Provider reported a status string outside its declared status map."""

    def __init__(self, raw_status: str, *, provider: str | None = None) -> None:
        super().__init__(f"Unexpected job status {raw_status!r} from {provider or 'provider'}")
        self.raw_status = raw_status
        self.provider = provider


class DuplicateSubmissionError(AnalysisError):
    """A job for the same logical key is still outstanding."""


__all__ = [
    "AnalysisError",
    "AnalysisValidationError",
    "DuplicateSubmissionError",
    "InvalidLocatorError",
    "JobTimeoutError",
    "MalformedResponseError",
    "ProviderFailureError",
    "UnexpectedJobStateError",
]
