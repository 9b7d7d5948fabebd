"""Bounded-concurrency request queues with timeout and retry.

Two FIFO queues (plain and streaming) share a single concurrency budget.
Every dispatched attempt runs in its own task; the queues and the active set
are only touched from the scheduler's own callbacks, never from inside an
adapter. Each request's outcome is delivered through its own future, so an
adapter failure never escapes the scheduler.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from multi_llm.errors import MissingCredentialError, QueueClearedError, RequestTimeoutError
from multi_llm.providers.base import BaseProvider, EventSink
from multi_llm.registry import AdapterRegistry, normalize_provider
from multi_llm.types import ChatRequest, ChatResponse, QueueStatus

logger = logging.getLogger(__name__)


class SchedulerConfig(BaseModel):
    """Concurrency, timeout and retry knobs."""

    max_concurrent_requests: int = Field(default=5, ge=1)
    request_timeout_s: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_s: float = Field(default=1.0, ge=0)


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


@dataclass(eq=False)
class QueueItem:
    """A request owned by the scheduler from enqueue until it settles."""

    provider: str
    request: ChatRequest
    future: asyncio.Future[ChatResponse]
    on_event: EventSink | None = None
    id: str = field(default_factory=_request_id)
    enqueued_at: float = field(default_factory=time.monotonic)
    retry_count: int = 0

    @property
    def streaming(self) -> bool:
        return self.on_event is not None

    @property
    def kind(self) -> str:
        return "stream" if self.streaming else "request"


class RequestScheduler:
    """Dispatches queued requests to adapters within a concurrency budget.

    Failed attempts are retried with linear backoff (``retry_delay_s *
    retry_count``) and re-enter the *front* of their queue, so a retry is
    dispatched before newer requests of the same kind. Non-streaming attempts
    race ``request_timeout_s``; streams end on their own terms.
    """

    def __init__(self, registry: AdapterRegistry, config: SchedulerConfig | None = None) -> None:
        self._registry = registry
        self.config = config or SchedulerConfig()
        self._request_queue: deque[QueueItem] = deque()
        self._stream_queue: deque[QueueItem] = deque()
        self._active: dict[str, tuple[QueueItem, asyncio.Task[None]]] = {}
        self._retrying: dict[str, tuple[QueueItem, asyncio.Task[None]]] = {}
        self._prefer_stream = False
        self._closed = False

    async def submit(
        self,
        provider: str,
        request: ChatRequest,
        on_event: EventSink | None = None,
    ) -> ChatResponse:
        """Queue a request and wait for its final outcome.

        Raises ``MissingCredentialError`` immediately, without queueing, when
        the provider has no adapter. Cancelling the awaiting task withdraws
        the request.
        """
        if self._closed:
            raise RuntimeError("Scheduler has been closed")
        self._registry.get(provider)
        provider = normalize_provider(provider)

        loop = asyncio.get_running_loop()
        item = QueueItem(provider=provider, request=request, future=loop.create_future(), on_event=on_event)
        item.future.add_done_callback(functools.partial(self._on_settled, item))
        self.enqueue(item)
        return await item.future

    def enqueue(self, item: QueueItem, *, front: bool = False) -> None:
        """Append ``item`` to its queue (or put it at the head) and drain."""
        queue = self._stream_queue if item.streaming else self._request_queue
        if front:
            queue.appendleft(item)
        else:
            queue.append(item)
        logger.debug("Queued %s %s for %s (retry %d)", item.kind, item.id, item.provider, item.retry_count)
        self._drain()

    def status(self) -> QueueStatus:
        """Snapshot of queue depth and active requests. No side effects."""
        return QueueStatus(
            queued=len(self._request_queue) + len(self._stream_queue),
            active=len(self._active),
            max_concurrent=self.config.max_concurrent_requests,
            request_queue=len(self._request_queue),
            stream_queue=len(self._stream_queue),
        )

    def drop_provider(self, provider: str) -> int:
        """Reject every queued request for ``provider``; returns how many."""
        provider = normalize_provider(provider)
        dropped = 0
        for queue in (self._request_queue, self._stream_queue):
            keep = [item for item in queue if item.provider != provider]
            for item in queue:
                if item.provider == provider:
                    dropped += 1
                    _reject(item, MissingCredentialError(provider))
            queue.clear()
            queue.extend(keep)
        return dropped

    def clear_queues(self) -> None:
        """Reject everything outstanding with ``QueueClearedError``.

        Queued and retry-pending requests are rejected; active attempts are
        cancelled, which cancels their in-flight HTTP call.
        """
        items = [*self._request_queue, *self._stream_queue]
        self._request_queue.clear()
        self._stream_queue.clear()

        for tracked in (self._retrying, self._active):
            for item, task in tracked.values():
                items.append(item)
                task.cancel()
            tracked.clear()

        rejected = 0
        for item in items:
            if _reject(item, QueueClearedError()):
                rejected += 1
        logger.info("All queues cleared (%d requests rejected)", rejected)

    async def aclose(self) -> None:
        """Clear the queues and wait for cancelled attempts to unwind."""
        self._closed = True
        tasks = [task for _, task in (*self._active.values(), *self._retrying.values())]
        self.clear_queues()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Request scheduler closed")

    def _drain(self) -> None:
        while len(self._active) < self.config.max_concurrent_requests:
            item = self._next_item()
            if item is None:
                return
            if item.future.done():
                continue
            self._dispatch(item)

    def _next_item(self) -> QueueItem | None:
        # alternate between the queues so neither kind starves the other
        if self._prefer_stream:
            order = (self._stream_queue, self._request_queue)
        else:
            order = (self._request_queue, self._stream_queue)
        for queue in order:
            if queue:
                self._prefer_stream = queue is self._request_queue
                return queue.popleft()
        return None

    def _dispatch(self, item: QueueItem) -> None:
        try:
            adapter = self._registry.get(item.provider)
        except MissingCredentialError as exc:
            _reject(item, exc)
            return
        task = asyncio.create_task(self._run(item, adapter), name=f"multi_llm-{item.id}")
        self._active[item.id] = (item, task)
        logger.debug(
            "Dispatched %s %s to %s (active %d/%d)",
            item.kind,
            item.id,
            item.provider,
            len(self._active),
            self.config.max_concurrent_requests,
        )

    async def _run(self, item: QueueItem, adapter: BaseProvider) -> None:
        try:
            response = await self._attempt(item, adapter)
        except asyncio.CancelledError:
            self._forget_active(item)
            self._drain()
            raise
        except Exception as exc:
            self._forget_active(item)
            self._handle_failure(item, exc)
        else:
            self._forget_active(item)
            logger.debug(
                "%s %s for %s completed in %dms (%d tokens)",
                item.kind,
                item.id,
                item.provider,
                response.response_time_ms,
                response.tokens,
            )
            if not item.future.done():
                item.future.set_result(response)
        self._drain()

    async def _attempt(self, item: QueueItem, adapter: BaseProvider) -> ChatResponse:
        if item.on_event is not None:
            return await adapter.send_stream(item.request, item.on_event)
        timeout = self.config.request_timeout_s
        try:
            return await asyncio.wait_for(adapter.chat(item.request), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(item.provider, timeout) from exc

    def _handle_failure(self, item: QueueItem, exc: Exception) -> None:
        if item.future.done():
            return
        if isinstance(exc, MissingCredentialError) or item.retry_count >= self.config.max_retries:
            logger.error(
                "%s %s for %s failed after %d retries: %s",
                item.kind,
                item.id,
                item.provider,
                item.retry_count,
                exc,
            )
            item.future.set_exception(exc)
            return

        item.retry_count += 1
        delay = self.config.retry_delay_s * item.retry_count
        logger.warning(
            "Retrying %s for %s, attempt %d in %.2fs: %s",
            item.kind,
            item.provider,
            item.retry_count,
            delay,
            exc,
        )
        task = asyncio.create_task(self._retry_later(item, delay), name=f"multi_llm-retry-{item.id}")
        self._retrying[item.id] = (item, task)

    async def _retry_later(self, item: QueueItem, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retrying.pop(item.id, None)
        if not item.future.done():
            self.enqueue(item, front=True)

    def _forget_active(self, item: QueueItem) -> None:
        entry = self._active.get(item.id)
        if entry is not None and entry[0] is item:
            del self._active[item.id]

    def _on_settled(self, item: QueueItem, future: asyncio.Future[ChatResponse]) -> None:
        """Withdraw a request whose caller stopped waiting for it."""
        if not future.cancelled():
            return
        queue = self._stream_queue if item.streaming else self._request_queue
        if item in queue:
            queue.remove(item)
        retry = self._retrying.pop(item.id, None)
        if retry is not None:
            retry[1].cancel()
        active = self._active.get(item.id)
        if active is not None:
            active[1].cancel()
        logger.debug("%s %s for %s cancelled by caller", item.kind, item.id, item.provider)


def _reject(item: QueueItem, exc: Exception) -> bool:
    if item.future.done():
        return False
    item.future.set_exception(exc)
    return True
