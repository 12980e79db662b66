"""Session store abstraction and the in-process implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone

from .merge import EntryUpdate, merge_entry
from .models import ResponseEntry, ScoreSummary, SessionRecord, UnitSpec, frozen_map


class SessionStore(ABC):
    """Storage for ``SessionRecord`` aggregates.

    Implementations must make ``merge_entry``, ``add_unit`` and
    ``set_summary`` atomic per session. ``set_summary`` is set-once: when a
    summary already exists it is returned unchanged.
    """

    @abstractmethod
    async def get(self, session_id: str) -> SessionRecord | None: ...

    @abstractmethod
    async def put(self, record: SessionRecord) -> None: ...

    @abstractmethod
    async def merge_entry(
        self, session_id: str, unit_id: str, update: EntryUpdate
    ) -> tuple[ResponseEntry | None, ResponseEntry] | None:
        """Merge ``update`` and return ``(old, new)``, or None for unknown session/unit."""

    @abstractmethod
    async def add_unit(self, session_id: str, unit: UnitSpec) -> bool:
        """Append a unit. False for an unknown or completed session, or a taken unit id."""

    @abstractmethod
    async def set_summary(self, session_id: str, summary: ScoreSummary) -> ScoreSummary | None: ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool: ...

    @abstractmethod
    async def list_ids(self, user_id: str | None = None) -> list[str]: ...


class InMemorySessionStore(SessionStore):
    """Dictionary-backed store; every method completes without awaiting."""

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}

    async def get(self, session_id: str) -> SessionRecord | None:
        return self._records.get(session_id)

    async def put(self, record: SessionRecord) -> None:
        self._records[record.session_id] = record

    async def merge_entry(self, session_id, unit_id, update):
        record = self._records.get(session_id)
        if record is None:
            return None
        unit = record.unit(unit_id)
        if unit is None:
            return None

        old = record.responses.get(unit_id)
        new = merge_entry(old, update, unit)
        responses = dict(record.responses)
        responses[unit_id] = new
        self._records[session_id] = replace(record, responses=frozen_map(responses))
        return old, new

    async def add_unit(self, session_id: str, unit: UnitSpec) -> bool:
        record = self._records.get(session_id)
        if record is None or record.summary is not None or record.unit(unit.unit_id) is not None:
            return False
        self._records[session_id] = replace(record, units=record.units + (unit,))
        return True

    async def set_summary(self, session_id: str, summary: ScoreSummary) -> ScoreSummary | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        if record.summary is not None:
            return record.summary
        self._records[session_id] = replace(
            record,
            summary=summary,
            completed=True,
            completed_at=datetime.now(timezone.utc),
        )
        return summary

    async def delete(self, session_id: str) -> bool:
        return self._records.pop(session_id, None) is not None

    async def list_ids(self, user_id: str | None = None) -> list[str]:
        return [
            session_id
            for session_id, record in self._records.items()
            if user_id is None or record.user_id == user_id
        ]


__all__ = ["InMemorySessionStore", "SessionStore"]
