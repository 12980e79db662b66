"""Per-session response aggregation.

``models`` holds the immutable session state, ``merge`` the pure update
rules, ``store`` the storage abstraction, ``mailbox`` the per-session
message queue and ``aggregator`` the component tying them together.
"""

from .aggregator import Finalizer, SessionAggregator
from .errors import (
    AssessmentIncompleteError,
    InvalidResponseError,
    SessionClosedError,
    SessionError,
    SessionNotFoundError,
    UnitNotFoundError,
)
from .mailbox import AnalysisMessage, SessionMailbox
from .merge import ModalityUpdate, TextUpdate, empty_entry, is_answered, merge_entry
from .models import (
    AssessmentDomain,
    ResponseEntry,
    ScoreSummary,
    SessionKind,
    SessionRecord,
    UnitKind,
    UnitSpec,
)
from .store import InMemorySessionStore, SessionStore

__all__ = [
    "AnalysisMessage",
    "AssessmentDomain",
    "AssessmentIncompleteError",
    "Finalizer",
    "InMemorySessionStore",
    "InvalidResponseError",
    "ModalityUpdate",
    "ResponseEntry",
    "ScoreSummary",
    "SessionAggregator",
    "SessionClosedError",
    "SessionError",
    "SessionKind",
    "SessionMailbox",
    "SessionNotFoundError",
    "SessionRecord",
    "SessionStore",
    "TextUpdate",
    "UnitKind",
    "UnitNotFoundError",
    "UnitSpec",
    "empty_entry",
    "is_answered",
    "merge_entry",
]
