"""Session-level errors raised by the aggregator and orchestrators."""

from __future__ import annotations


class SessionError(RuntimeError):
    """Base class for session lifecycle failures."""


class SessionNotFoundError(SessionError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class UnitNotFoundError(SessionError, LookupError):
    def __init__(self, session_id: str, unit_id: str) -> None:
        super().__init__(f"Unit {unit_id} is not part of session {session_id}")
        self.session_id = session_id
        self.unit_id = unit_id


class InvalidResponseError(SessionError, ValueError):
    """An answer does not fit the unit it was given for."""


class AssessmentIncompleteError(SessionError):
    """Finalization was requested while units are still unanswered."""

    def __init__(self, session_id: str, outstanding: list[str]) -> None:
        super().__init__(
            f"Session {session_id} has {len(outstanding)} unanswered unit(s): "
            + ", ".join(outstanding)
        )
        self.session_id = session_id
        self.outstanding = outstanding


class SessionClosedError(SessionError):
    """Input arrived for a session whose result is already stored."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} is already completed")
        self.session_id = session_id


__all__ = [
    "AssessmentIncompleteError",
    "InvalidResponseError",
    "SessionClosedError",
    "SessionError",
    "SessionNotFoundError",
    "UnitNotFoundError",
]
