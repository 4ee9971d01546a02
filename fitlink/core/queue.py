"""Memory-resident FIFO of requests deferred while offline."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fitlink.core.clock import SYSTEM_CLOCK, Clock
from fitlink.core.constants import REDRAIN_DELAY_SECONDS
from fitlink.core.errors import BackendError, NetworkUnavailable
from fitlink.core.models import QueuedRequest, QueueEvent, RequestKind

logger = logging.getLogger(__name__)

Replay = Callable[[QueuedRequest], Awaitable[Any]]
QueueListener = Callable[[QueueEvent], None]


class OfflineQueue:
    """Buffers deferred requests and replays them in arrival order.

    ``drain`` is non-reentrant: a call while another drain runs returns at
    once. A failed replay goes to the tail of the queue with its attempt count
    bumped, or is dropped once the count reaches ``max_retries``. A pass that
    leaves entries behind schedules another drain after ``redrain_delay``.

    Nothing is replayed while ``is_online`` reports no connectivity, and a
    replay that hits :class:`NetworkUnavailable` ends the pass without counting
    an attempt. Entries not yet replayed when a pass is cancelled go back to
    the head of the queue.
    """

    def __init__(
        self,
        replay: Replay,
        max_retries: int = 3,
        redrain_delay: float = REDRAIN_DELAY_SECONDS,
        clock: Clock = SYSTEM_CLOCK,
        is_online: Callable[[], bool] = lambda: True,
    ) -> None:
        self.replay = replay
        self.max_retries = max_retries
        self.redrain_delay = redrain_delay
        self.clock = clock
        self.is_online = is_online
        self._entries: List[QueuedRequest] = []
        self._inflight: List[QueuedRequest] = []
        self._draining = False
        self._listeners: List[QueueListener] = []
        self._redrain_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def pending(self) -> List[QueuedRequest]:
        return list(self._entries)

    def add_listener(self, listener: QueueListener) -> None:
        self._listeners.append(listener)

    def enqueue(self, kind: RequestKind, payload: Dict[str, Any]) -> str:
        now = self.clock.now()
        request = QueuedRequest(
            id=f"{kind.value}_{int(now * 1000)}_{uuid.uuid4().hex[:9]}",
            kind=kind,
            payload=dict(payload),
            enqueued_at=now,
        )
        self._entries.append(request)
        logger.info("Request queued: %s (%s)", request.id, kind.value)
        return request.id

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()
        logger.info("Request queue cleared")

    def _notify(self, event: QueueEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Queue listener %r failed", listener)

    async def drain(self) -> None:
        if self._draining or not self._entries:
            return
        if not self.is_online():
            logger.debug("Offline, leaving %d queued requests for the next recovery", len(self._entries))
            return

        self._draining = True
        batch = self._inflight = self._entries
        self._entries = []
        try:
            logger.info("Processing %d queued requests", len(batch))

            while batch:
                request = batch[0]
                try:
                    result = await self.replay(request)
                except NetworkUnavailable:
                    logger.info("Network lost during drain, %d requests stay queued", len(batch))
                    break
                except Exception as exc:
                    if not self._settle(batch, request):
                        continue
                    if not isinstance(exc, (BackendError, OSError)):
                        logger.exception("Replay of queued request %s raised unexpectedly", request.id)
                    self._handle_failure(request, exc)
                    continue
                self._settle(batch, request)
                logger.info("Processed queued request: %s", request.id)
                self._notify(QueueEvent(request=request, outcome="replayed", result=result))
        finally:
            # Entries not yet settled keep their place ahead of anything requeued.
            self._entries[:0] = batch
            self._inflight = []
            self._draining = False

        if self._entries and self.is_online():
            self._schedule_redrain()

    @staticmethod
    def _settle(batch: List[QueuedRequest], request: QueuedRequest) -> bool:
        """Remove ``request`` from the head of ``batch``; False if it was cleared meanwhile."""
        if batch and batch[0] is request:
            batch.pop(0)
            return True
        return False

    def _handle_failure(self, request: QueuedRequest, exc: BaseException) -> None:
        if request.attempt_count >= self.max_retries:
            logger.warning(
                "Dropping queued request %s after %d attempts: %s",
                request.id,
                request.attempt_count + 1,
                exc,
            )
            self._notify(QueueEvent(request=request, outcome="dropped", error=exc))
            return

        request.record_failure()
        self._entries.append(request)
        logger.info("Queued request %s failed (attempt %d): %s", request.id, request.attempt_count, exc)
        self._notify(QueueEvent(request=request, outcome="requeued", error=exc))

    def _schedule_redrain(self) -> None:
        pending = self._redrain_task
        if pending is not None and not pending.done() and pending is not asyncio.current_task():
            return
        logger.debug("Rescheduling queue drain in %.1fs", self.redrain_delay)
        self._redrain_task = asyncio.get_running_loop().create_task(self._redrain_later())

    async def _redrain_later(self) -> None:
        await self.clock.sleep(self.redrain_delay)
        await self.drain()

    async def join(self) -> None:
        """Wait until no rescheduled drain is pending."""
        while self._redrain_task is not None and not self._redrain_task.done():
            await asyncio.shield(self._redrain_task)

    def close(self) -> None:
        if self._redrain_task is not None and not self._redrain_task.done():
            self._redrain_task.cancel()
        self._redrain_task = None
