"""Test doubles shared by the test modules."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx

from multi_llm.providers.base import BaseProvider, EventSink, ModelCapabilities
from multi_llm.types import ChatRequest, ChatResponse, Message, StreamEvent, Usage

_real_sleep = asyncio.sleep


def make_request(model: str = "toy", text: str = "hi", **kwargs: Any) -> ChatRequest:
    return ChatRequest(model=model, messages=[Message(role="user", content=text)], **kwargs)


def make_response(req: ChatRequest, content: str, provider: str = "fake") -> ChatResponse:
    usage = Usage(prompt_tokens=1, completion_tokens=1, total_tokens=2)
    return ChatResponse(
        provider=provider,
        model=req.model,
        content=content,
        tokens=2,
        cost=0.0,
        response_time_ms=0,
        usage=usage,
    )


class ScriptedProvider(BaseProvider):
    """Adapter whose behaviour is scripted per model name.

    ``outcomes[model]`` is consumed one entry per attempt: an exception is
    raised, a string becomes the response content. Once exhausted every
    attempt succeeds with ``"<model>:ok"``. ``gates[model]`` makes attempts
    wait for the event first; ``delay`` adds a real sleep per attempt.
    """

    name = "fake"

    def __init__(
        self,
        outcomes: dict[str, list[Any]] | None = None,
        gates: dict[str, asyncio.Event] | None = None,
        delay: float = 0.0,
        probe: Callable[[], int] | None = None,
    ) -> None:
        self.outcomes = {model: list(items) for model, items in (outcomes or {}).items()}
        self.gates = gates or {}
        self.delay = delay
        self.probe = probe
        self.calls: list[str] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.probed: list[int] = []
        self.closed = False

    def capabilities(self, model: str) -> ModelCapabilities:
        return ModelCapabilities(streaming=True, vision=False)

    def format_messages(
        self, messages: list[Message], system_prompt: str | None = None, *, model: str = ""
    ) -> list[dict[str, Any]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    async def chat(self, req: ChatRequest) -> ChatResponse:
        content = await self._attempt(req)
        return make_response(req, content)

    async def send_stream(self, req: ChatRequest, on_event: EventSink) -> ChatResponse:
        content = await self._attempt(req)
        for piece in content.split(":"):
            on_event(StreamEvent.content_delta(piece))
        response = make_response(req, content)
        on_event(StreamEvent.finished(usage=response.usage, tokens=response.tokens, cost_hint=0.0))
        return response

    async def aclose(self) -> None:
        self.closed = True

    async def _attempt(self, req: ChatRequest) -> str:
        self.calls.append(req.model)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.probe is not None:
            self.probed.append(self.probe())
        try:
            gate = self.gates.get(req.model)
            if gate is not None:
                await gate.wait()
            if self.delay:
                await _real_sleep(self.delay)
            pending = self.outcomes.get(req.model)
            outcome = pending.pop(0) if pending else f"{req.model}:ok"
            if isinstance(outcome, BaseException):
                raise outcome
            self.completed.append(req.model)
            return outcome
        finally:
            self.in_flight -= 1


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given chunks, optionally failing afterwards."""

    def __init__(self, chunks: Iterable[bytes], error: Exception | None = None) -> None:
        self._chunks = list(chunks)
        self._error = error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


def sse_body(*frames: Any, done: bool = True) -> bytes:
    """Encode frames as ``data:`` lines; strings are sent verbatim."""
    lines = []
    for frame in frames:
        payload = frame if isinstance(frame, str) else json.dumps(frame, ensure_ascii=False)
        lines.append(f"data: {payload}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


def delta(content: str | None = None, reasoning: str | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if content is not None:
        body["content"] = content
    if reasoning is not None:
        body["reasoning_content"] = reasoning
    return {"choices": [{"index": 0, "delta": body}], **extra}


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await _real_sleep(0.001)
