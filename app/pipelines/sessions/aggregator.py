"""Session aggregator: the only writer of session response state.

Text answers arrive through ``record_text``; analysis outcomes are posted
to the session mailbox (directly or via ``attach``) and applied by the
mailbox consumer through ``apply_result``. After every unit transition the
session completion is recomputed and, for kinds registered with
``auto=True``, finalization is scheduled. ``finalize`` is idempotent:
the first call runs the finalizer, later calls return the stored summary.
Mailboxes, locks and scheduled finalizes are dropped once idle or done;
``close_session`` removes whatever remains along with the stored record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable
from uuid import uuid4

from app.pipelines.analysis.types import AnalysisResult, Modality
from app.telemetry import increment_finalization

from .errors import SessionNotFoundError
from .mailbox import AnalysisMessage, SessionMailbox
from .merge import EntryUpdate, ModalityUpdate, TextUpdate
from .models import ResponseEntry, ScoreSummary, SessionKind, SessionRecord, UnitSpec
from .store import SessionStore

logger = logging.getLogger(__name__)

Finalizer = Callable[[SessionRecord], Awaitable[ScoreSummary]]


def describe_failure(modality: Modality, exc: BaseException) -> str:
    return f"{modality.value} analysis failed: {exc}"


class SessionAggregator:
    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._finalizers: dict[SessionKind, tuple[Finalizer, bool]] = {}
        self._mailboxes: dict[str, SessionMailbox] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._background: dict[str, set[asyncio.Task]] = {}

    @property
    def store(self) -> SessionStore:
        return self._store

    def register_finalizer(self, kind: SessionKind, finalizer: Finalizer, *, auto: bool = True) -> None:
        self._finalizers[kind] = (finalizer, auto)

    async def create_session(
        self,
        user_id: str,
        kind: SessionKind,
        units: tuple[UnitSpec, ...] | list[UnitSpec] = (),
        *,
        session_id: str | None = None,
    ) -> SessionRecord:
        record = SessionRecord(
            session_id=session_id or str(uuid4()),
            user_id=user_id,
            kind=kind,
            units=tuple(units),
        )
        await self._store.put(record)
        logger.info(
            "Created %s session %s for user %s with %d unit(s)",
            kind.value,
            record.session_id,
            user_id,
            len(record.units),
        )
        return record

    async def get(self, session_id: str) -> SessionRecord | None:
        return await self._store.get(session_id)

    async def add_unit(self, session_id: str, unit: UnitSpec) -> bool:
        return await self._store.add_unit(session_id, unit)

    async def record_text(self, session_id: str, unit_id: str, text: str) -> bool:
        """Store the direct answer for a unit. False for an unknown session or unit."""

        return await self._merge(session_id, unit_id, TextUpdate(text=text))

    async def apply_result(
        self,
        session_id: str,
        unit_id: str,
        modality: Modality,
        result: AnalysisResult | None = None,
        *,
        error: str | None = None,
    ) -> bool:
        """Merge one modality outcome (a result or an error string) into a unit."""

        if result is not None:
            update = ModalityUpdate(modality=modality, payload=result.model_dump_json())
        else:
            update = ModalityUpdate(modality=modality, error=error or f"{modality.value} analysis failed")
        return await self._merge(session_id, unit_id, update)

    def post(self, message: AnalysisMessage) -> None:
        mailbox = self._mailboxes.get(message.session_id)
        if mailbox is None:
            mailbox = SessionMailbox(message.session_id, self._handle_message, self._release_mailbox)
            self._mailboxes[message.session_id] = mailbox
        mailbox.post(message)

    def attach(self, session_id: str, unit_id: str, modality: Modality, future: asyncio.Future) -> None:
        """Route the outcome of an analysis future to the session mailbox."""

        def _on_done(done: asyncio.Future) -> None:
            if done.cancelled():
                message = AnalysisMessage(session_id, unit_id, modality, error=f"{modality.value} analysis cancelled")
            elif done.exception() is not None:
                exc = done.exception()
                logger.warning("%s analysis for %s/%s failed: %s", modality.value, session_id, unit_id, exc)
                message = AnalysisMessage(session_id, unit_id, modality, error=describe_failure(modality, exc))
            else:
                message = AnalysisMessage(session_id, unit_id, modality, result=done.result())
            self.post(message)

        future.add_done_callback(_on_done)

    async def is_complete(self, session_id: str) -> bool:
        record = await self._store.get(session_id)
        return record is not None and record.all_units_answered

    async def outstanding_units(self, session_id: str) -> list[str]:
        record = await self._store.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return [
            unit.unit_id
            for unit in record.units
            if (entry := record.responses.get(unit.unit_id)) is None or not entry.answered
        ]

    async def finalize(self, session_id: str) -> ScoreSummary:
        """Compute and store the session summary once; return the stored one afterwards."""

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            record = await self._store.get(session_id)
            if record is None:
                self._locks.pop(session_id, None)
                raise SessionNotFoundError(session_id)
            if record.summary is not None:
                increment_finalization(record.kind.value, "cached")
                self._locks.pop(session_id, None)
                return record.summary

            registered = self._finalizers.get(record.kind)
            if registered is None:
                raise RuntimeError(f"No finalizer registered for {record.kind.value} sessions")
            finalizer, _ = registered

            logger.info("Finalizing %s session %s", record.kind.value, session_id)
            summary = await finalizer(record)
            stored = await self._store.set_summary(session_id, summary)
            if stored is None:
                raise SessionNotFoundError(session_id)
            increment_finalization(record.kind.value, "computed")
            # Summary is set-once; later callers take the cached path.
            self._locks.pop(session_id, None)
            return stored

    async def drain(self, session_id: str) -> None:
        """Wait for queued analysis messages and scheduled finalization of a session."""

        mailbox = self._mailboxes.get(session_id)
        if mailbox is not None:
            await mailbox.drain()
        pending = list(self._background.get(session_id, ()))
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close_session(self, session_id: str) -> bool:
        mailbox = self._mailboxes.pop(session_id, None)
        if mailbox is not None:
            await mailbox.close()
        self._locks.pop(session_id, None)
        self._background.pop(session_id, None)
        return await self._store.delete(session_id)

    def active_sessions(self) -> set[str]:
        """Sessions holding a mailbox, a lock or a scheduled finalize."""

        return set(self._mailboxes) | set(self._locks) | set(self._background)

    def _release_mailbox(self, mailbox: SessionMailbox) -> None:
        if self._mailboxes.get(mailbox.session_id) is mailbox:
            del self._mailboxes[mailbox.session_id]

    async def _handle_message(self, message: AnalysisMessage) -> None:
        applied = await self.apply_result(
            message.session_id,
            message.unit_id,
            message.modality,
            message.result,
            error=message.error,
        )
        if not applied:
            logger.warning(
                "Dropped %s result for unknown unit %s/%s",
                message.modality.value,
                message.session_id,
                message.unit_id,
            )

    async def _merge(self, session_id: str, unit_id: str, update: EntryUpdate) -> bool:
        outcome = await self._store.merge_entry(session_id, unit_id, update)
        if outcome is None:
            return False
        old, new = outcome
        if new.answered and (old is None or not old.answered):
            await self._on_unit_answered(session_id, new)
        return True

    async def _on_unit_answered(self, session_id: str, entry: ResponseEntry) -> None:
        record = await self._store.get(session_id)
        if record is None or not record.all_units_answered:
            return
        registered = self._finalizers.get(record.kind)
        if registered is None or not registered[1] or record.summary is not None:
            return
        logger.info("Session %s complete after unit %s; scheduling finalize", session_id, entry.unit_id)
        self._schedule_finalize(session_id)

    def _schedule_finalize(self, session_id: str) -> None:
        task = asyncio.ensure_future(self.finalize(session_id))
        tasks = self._background.setdefault(session_id, set())
        tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            tasks.discard(finished)
            if not tasks and self._background.get(session_id) is tasks:
                del self._background[session_id]
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(
                    "Automatic finalize of session %s failed: %s",
                    session_id,
                    finished.exception(),
                )

        task.add_done_callback(_done)


__all__ = ["Finalizer", "SessionAggregator", "describe_failure"]
