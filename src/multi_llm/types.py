"""Provider-agnostic request/response models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
StreamEventType = Literal["content_delta", "reasoning_delta", "finished"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """Single chat message. Immutable once sent."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    # data-URIs, in display order
    images: tuple[str, ...] = ()


class ChatRequest(BaseModel):
    """Normalized request shared by all providers."""

    model: str
    messages: list[Message]
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False


class Usage(BaseModel):
    """Token accounting for one completed request."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Terminal value of a request, streamed or not."""

    provider: str
    model: str
    content: str
    reasoning_content: str = ""
    tokens: int
    cost: float
    response_time_ms: int
    first_response_ms: int | None = None
    usage: Usage
    # usage numbers came from the character heuristic, not the provider
    estimated: bool = False


class StreamEvent(BaseModel):
    """Decoded streaming event.

    Zero or more ``content_delta`` / ``reasoning_delta`` events are followed
    by exactly one ``finished`` event.
    """

    type: StreamEventType
    text: str | None = None
    usage: Usage | None = None
    tokens: int | None = None
    cost_hint: float | None = None

    @classmethod
    def content_delta(cls, text: str) -> StreamEvent:
        return cls(type="content_delta", text=text)

    @classmethod
    def reasoning_delta(cls, text: str) -> StreamEvent:
        return cls(type="reasoning_delta", text=text)

    @classmethod
    def finished(
        cls,
        usage: Usage | None = None,
        tokens: int | None = None,
        cost_hint: float | None = None,
    ) -> StreamEvent:
        return cls(type="finished", usage=usage, tokens=tokens, cost_hint=cost_hint)


class ProviderConfig(BaseModel):
    """Static description of a backend provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    base_url: str
    chat_path: str = "/chat/completions"
    supports_stream: bool = True
    supports_vision: bool = False


class QueueStatus(BaseModel):
    """Scheduler introspection snapshot."""

    queued: int
    active: int
    max_concurrent: int
    request_queue: int
    stream_queue: int
