"""Async client orchestrating provider interactions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx

from multi_llm.config import Settings
from multi_llm.errors import UnsupportedFeatureError
from multi_llm.providers.base import BaseProvider, EventSink, ModelCapabilities
from multi_llm.registry import AdapterRegistry, normalize_provider
from multi_llm.scheduler import RequestScheduler, SchedulerConfig
from multi_llm.types import ChatRequest, ChatResponse, QueueStatus, StreamEvent

logger = logging.getLogger(__name__)


class LLMClient:
    """High-level coordinator for chatting with several providers at once.

    Construct one per application and close it with ``aclose()`` (or use it
    as an async context manager). Requests go through a shared
    ``RequestScheduler`` that bounds concurrency and retries failures.
    """

    def __init__(
        self,
        *,
        config: SchedulerConfig | None = None,
        http_timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = AdapterRegistry(timeout_s=http_timeout_s, transport=transport)
        self._scheduler = RequestScheduler(self._registry, config)
        # replaced adapters may still serve in-flight requests; closed on aclose()
        self._retired: list[BaseProvider] = []

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> LLMClient:
        """Build a client from environment settings, registering any keys found."""
        settings = settings or Settings()
        config = SchedulerConfig(
            max_concurrent_requests=settings.max_concurrent_requests,
            request_timeout_s=settings.request_timeout_s,
            max_retries=settings.max_retries,
            retry_delay_s=settings.retry_delay_s,
        )
        client = cls(config=config, http_timeout_s=settings.http_timeout_s, **kwargs)
        for provider, api_key in settings.credentials().items():
            client.set_credential(provider, api_key)
        return client

    @property
    def scheduler(self) -> RequestScheduler:
        return self._scheduler

    def set_credential(self, provider: str, api_key: str) -> None:
        """Install the API key for ``provider``; a blank key removes it."""
        if not api_key or not api_key.strip():
            self.remove_credential(provider)
            return
        previous = self._registry.set_credential(provider, api_key)
        if previous is not None:
            self._retired.append(previous)

    def register_provider(self, provider: BaseProvider) -> None:
        """Use a pre-built adapter (custom endpoint, test double)."""
        previous = self._registry.register(provider)
        if previous is not None:
            self._retired.append(previous)

    def remove_credential(self, provider: str) -> None:
        """Forget the provider's key and reject its queued requests."""
        key = normalize_provider(provider)
        previous = self._registry.remove(key)
        if previous is not None:
            self._retired.append(previous)
        dropped = self._scheduler.drop_provider(key)
        if dropped:
            logger.info("Rejected %d queued requests for %s", dropped, key)

    def get_provider(self, name: str) -> BaseProvider:
        """Return a provider by its registered name."""
        return self._registry.get(name)

    def capabilities(self, provider: str, model: str) -> ModelCapabilities:
        """Return model capability info for a provider."""
        return self.get_provider(provider).capabilities(model)

    def service_status(self) -> dict[str, bool]:
        """Which known providers currently have a credential."""
        return self._registry.status()

    async def send_request(self, provider: str, request: ChatRequest) -> ChatResponse:
        """Send a non-streamed request through the scheduler."""
        return await self._scheduler.submit(provider, request)

    async def send_request_stream(
        self,
        provider: str,
        request: ChatRequest,
        on_event: EventSink,
    ) -> ChatResponse:
        """Stream a request, pushing each ``StreamEvent`` to ``on_event``.

        ``on_event`` is called from the task reading the response, in arrival
        order, and must not block. If an attempt fails and is retried, the
        retry streams again from the start.
        """
        if not self.capabilities(provider, request.model).streaming:
            raise UnsupportedFeatureError("streaming")
        return await self._scheduler.submit(provider, request, on_event)

    async def stream(self, provider: str, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Yield stream events lazily; ends after the ``finished`` event.

        Closing the iterator early cancels the underlying request.
        """
        events: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        task = asyncio.ensure_future(self.send_request_stream(provider, request, events.put_nowait))
        task.add_done_callback(lambda _: events.put_nowait(None))
        try:
            while True:
                event = await events.get()
                if event is None:
                    break
                yield event
            # surface the failure, if any, after the events already delivered
            task.result()
        finally:
            if not task.done():
                task.cancel()

    async def send_to_multiple(
        self,
        providers: Iterable[str],
        request: ChatRequest,
    ) -> dict[str, ChatResponse | Exception]:
        """Send the same request to every provider concurrently.

        A failing provider contributes its exception instead of aborting the
        comparison.
        """
        names = list(providers)
        results = await asyncio.gather(
            *(self.send_request(name, request) for name in names),
            return_exceptions=True,
        )
        output: dict[str, ChatResponse | Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            output[name] = result
        return output

    def get_queue_status(self) -> QueueStatus:
        return self._scheduler.status()

    def clear_queues(self) -> None:
        self._scheduler.clear_queues()

    async def aclose(self) -> None:
        """Reject outstanding work and close every HTTP client."""
        await self._scheduler.aclose()
        await self._registry.aclose()
        retired, self._retired = self._retired, []
        for provider in retired:
            await provider.aclose()
        logger.info("LLM client closed")

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
