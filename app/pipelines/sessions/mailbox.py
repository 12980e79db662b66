"""Per-session message queue between analysis futures and the aggregator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from app.pipelines.analysis.types import AnalysisResult, Modality

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisMessage:
    """Outcome of one modality analysis for one unit."""

    session_id: str
    unit_id: str
    modality: Modality
    result: AnalysisResult | None = None
    error: str | None = None


MessageHandler = Callable[[AnalysisMessage], Awaitable[None]]
IdleCallback = Callable[["SessionMailbox"], None]


class SessionMailbox:
    """FIFO of ``AnalysisMessage`` drained by a single consumer task.

    ``post`` never blocks and may be called from future done-callbacks; the
    handler only ever runs inside the consumer task. The consumer exits once
    the queue is empty, calling ``on_idle``, and ``post`` starts a new one.
    """

    def __init__(
        self,
        session_id: str,
        handler: MessageHandler,
        on_idle: IdleCallback | None = None,
    ) -> None:
        self.session_id = session_id
        self._handler = handler
        self._on_idle = on_idle
        self._queue: asyncio.Queue[AnalysisMessage] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None

    def post(self, message: AnalysisMessage) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.ensure_future(self._consume())
        self._queue.put_nowait(message)

    @property
    def idle(self) -> bool:
        return self._queue.empty() and (self._consumer is None or self._consumer.done())

    async def drain(self) -> None:
        """Wait until every posted message has been handled."""

        await self._queue.join()

    async def close(self) -> None:
        if self._consumer is None:
            return
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None

    async def _consume(self) -> None:
        while not self._queue.empty():
            message = self._queue.get_nowait()
            try:
                await self._handler(message)
            except Exception:
                logger.exception(
                    "Failed to apply %s result for %s/%s",
                    message.modality.value,
                    message.session_id,
                    message.unit_id,
                )
            finally:
                self._queue.task_done()
        if self._on_idle is not None:
            self._on_idle(self)


__all__ = ["AnalysisMessage", "IdleCallback", "MessageHandler", "SessionMailbox"]
