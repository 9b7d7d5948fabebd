"""Provider-agnostic base interfaces and helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from multi_llm import pricing
from multi_llm.types import ChatRequest, ChatResponse, Message, StreamEvent

EventSink = Callable[[StreamEvent], None]


@dataclass(frozen=True)
class ModelCapabilities:
    """Describes feature support for a provider model."""

    streaming: bool
    vision: bool


class BaseProvider(ABC):
    """Abstract base class for provider implementations."""

    name: str

    @abstractmethod
    def capabilities(self, model: str) -> ModelCapabilities:
        """Return capability flags for the given model identifier."""
        raise NotImplementedError

    @abstractmethod
    def format_messages(
        self, messages: list[Message], system_prompt: str | None = None, *, model: str = ""
    ) -> list[dict[str, Any]]:
        """Translate messages into the provider's native message array.

        Images are kept only when ``capabilities(model).vision`` is set.
        """
        raise NotImplementedError

    @abstractmethod
    async def chat(self, req: ChatRequest) -> ChatResponse:
        """Execute a single non-streamed chat completion request."""
        raise NotImplementedError

    @abstractmethod
    async def send_stream(self, req: ChatRequest, on_event: EventSink) -> ChatResponse:
        """Stream a completion, pushing decoded events into ``on_event``.

        Returns the accumulated response once the stream has closed. Events
        already delivered stay valid if the stream later fails.
        """
        raise NotImplementedError

    def estimate_cost(self, tokens: int, model: str) -> float:
        """Approximate cost from the static price table. Never raises."""
        return pricing.estimate_cost(self.name, tokens, model)

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    async def __aenter__(self) -> BaseProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
