"""Shared implementation for OpenAI-style chat completion APIs."""

from __future__ import annotations

import json
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, ClassVar, cast

import httpx
from pydantic import ValidationError

from multi_llm import pricing
from multi_llm.config import PROVIDERS
from multi_llm.errors import DecodeError, ProviderApiError, TransportError
from multi_llm.providers.base import BaseProvider, EventSink, ModelCapabilities
from multi_llm.sse import iter_frames
from multi_llm.types import ChatRequest, ChatResponse, Message, StreamEvent, Usage


@dataclass
class _StreamState:
    started: float
    content: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    usage: Usage | None = None
    first_delta_at: float | None = None
    # a usage-only frame (empty choices) ends usage reporting
    usage_closed: bool = False

    def mark_delta(self) -> None:
        if self.first_delta_at is None:
            self.first_delta_at = time.monotonic()


class OpenAICompatibleProvider(BaseProvider):
    """Async wrapper for ``/chat/completions`` style endpoints.

    Subclasses pick the provider id and tune the request defaults; the wire
    handling (payload, error mapping, SSE decoding, usage fallback) is shared.
    """

    name: ClassVar[str]
    default_temperature: ClassVar[float] = 0.7
    default_max_tokens: ClassVar[int] = 4096
    max_tokens_cap: ClassVar[int] = 4096
    extra_body: ClassVar[dict[str, Any]] = {}
    stream_extra_body: ClassVar[dict[str, Any]] = {}
    extra_headers: ClassVar[dict[str, str]] = {}

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = PROVIDERS[self.name]
        self._client = httpx.AsyncClient(
            base_url=base_url or self.config.base_url,
            timeout=timeout_s,
            transport=transport,
        )
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def capabilities(self, model: str) -> ModelCapabilities:
        return ModelCapabilities(streaming=self.config.supports_stream, vision=self.config.supports_vision)

    def format_messages(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        *,
        model: str = "",
    ) -> list[dict[str, Any]]:
        vision = self.capabilities(model).vision
        formatted: list[dict[str, Any]] = []
        if system_prompt:
            formatted.append({"role": "system", "content": system_prompt})
        formatted.extend(self._serialize_message(m, vision) for m in messages)
        return formatted

    def estimate_tokens(self, text: str) -> int:
        """Token estimate used when the provider reports no usage."""
        return pricing.estimate_tokens(text)

    async def chat(self, req: ChatRequest) -> ChatResponse:
        """Call the completions endpoint once and normalize the result."""
        started = time.monotonic()
        payload = self._build_payload(req, stream=False)
        try:
            response = await self._client.post(self.config.chat_path, headers=self._headers, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(self.name, _describe(exc)) from exc
        data = self._json_or_error(response)

        choices = data.get("choices") or []
        message = (choices[0].get("message") or {}) if choices and isinstance(choices[0], dict) else {}
        if not isinstance(message, dict):
            raise ProviderApiError(self.name, "unexpected response body", status_code=response.status_code)
        content = message.get("content") or ""
        reasoning = message.get("reasoning_content") or ""

        usage, estimated = self._resolve_usage(req, content, self._extract_usage(data))
        return self._build_response(req, content, reasoning, usage, estimated, started)

    async def send_stream(self, req: ChatRequest, on_event: EventSink) -> ChatResponse:
        """Stream the completion, emitting deltas then one ``finished`` event."""
        state = _StreamState(started=time.monotonic())
        payload = self._build_payload(req, stream=True)

        try:
            async with self._client.stream(
                "POST",
                self.config.chat_path,
                headers=self._headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise ProviderApiError(
                        self.name,
                        self._error_message(body, response.reason_phrase),
                        status_code=response.status_code,
                    )

                async with aclosing(iter_frames(response.aiter_bytes())) as frames:
                    async for raw in frames:
                        try:
                            frame = self._decode_frame(raw)
                            if "error" in frame and not frame.get("choices"):
                                raise ProviderApiError(
                                    self.name,
                                    self._error_text(frame) or "stream error",
                                    status_code=response.status_code,
                                )
                            self._apply_frame(frame, state, on_event)
                        except DecodeError as exc:
                            self._logger.debug("%s: skipping stream frame: %s", self.name, exc)
                            continue
                        if state.usage_closed:
                            break
        except httpx.HTTPError as exc:
            raise TransportError(self.name, _describe(exc)) from exc

        content = "".join(state.content)
        usage, estimated = self._resolve_usage(req, content, state.usage)
        result = self._build_response(
            req,
            content,
            "".join(state.reasoning),
            usage,
            estimated,
            state.started,
            first_delta_at=state.first_delta_at,
        )
        on_event(StreamEvent.finished(usage=usage, tokens=usage.total_tokens, cost_hint=result.cost))
        return result

    def _build_payload(self, req: ChatRequest, *, stream: bool) -> dict[str, Any]:
        max_tokens = min(req.max_tokens or self.default_max_tokens, self.max_tokens_cap)
        temperature = req.temperature if req.temperature is not None else self.default_temperature
        payload: dict[str, Any] = {
            "model": req.model,
            "messages": self.format_messages(req.messages, req.system_prompt, model=req.model),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": stream,
        }
        payload.update(self.extra_body)
        if stream:
            payload.update(self.stream_extra_body)
        return payload

    def _serialize_message(self, message: Message, vision: bool) -> dict[str, Any]:
        if message.images and vision:
            parts: list[dict[str, Any]] = [{"type": "text", "text": message.content}]
            parts.extend(self._image_part(url) for url in message.images)
            return {"role": message.role, "content": parts}
        return {"role": message.role, "content": message.content}

    def _image_part(self, url: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": url}}

    def _apply_frame(self, frame: dict[str, Any], state: _StreamState, on_event: EventSink) -> None:
        """Fold one frame into ``state``; raises ``DecodeError`` before any change if malformed."""
        choices = frame.get("choices") or []
        if not isinstance(choices, list) or (choices and not isinstance(choices[0], dict)):
            raise DecodeError(f"malformed choices: {choices!r:.80}")
        delta = (choices[0].get("delta") or {}) if choices else {}
        if not isinstance(delta, dict):
            raise DecodeError(f"malformed delta: {delta!r:.80}")

        usage = self._extract_usage(frame)
        if usage is not None:
            state.usage = usage
        if not choices:
            if usage is not None:
                state.usage_closed = True
            return

        reasoning = delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            state.mark_delta()
            state.reasoning.append(reasoning)
            on_event(StreamEvent.reasoning_delta(reasoning))

        content = delta.get("content")
        if isinstance(content, str) and content:
            state.mark_delta()
            state.content.append(content)
            on_event(StreamEvent.content_delta(content))

    def _resolve_usage(
        self, req: ChatRequest, content: str, reported: Usage | None
    ) -> tuple[Usage, bool]:
        if reported is not None:
            if reported.prompt_tokens or reported.completion_tokens:
                return reported, False
            prompt, completion = pricing.split_total(reported.total_tokens)
            return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=reported.total_tokens), False

        prompt_text = "".join([req.system_prompt or "", *(m.content for m in req.messages)])
        prompt = self.estimate_tokens(prompt_text)
        completion = self.estimate_tokens(content)
        self._logger.warning(
            "%s returned no usage data, using estimate (prompt=%d, completion=%d)",
            self.name,
            prompt,
            completion,
        )
        usage = Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)
        return usage, True

    def _build_response(
        self,
        req: ChatRequest,
        content: str,
        reasoning: str,
        usage: Usage,
        estimated: bool,
        started: float,
        first_delta_at: float | None = None,
    ) -> ChatResponse:
        first_response_ms = None
        if first_delta_at is not None:
            first_response_ms = int((first_delta_at - started) * 1000)
        return ChatResponse(
            provider=self.name,
            model=req.model,
            content=content,
            reasoning_content=reasoning,
            tokens=usage.total_tokens,
            cost=self.estimate_cost(usage.total_tokens, req.model),
            response_time_ms=int((time.monotonic() - started) * 1000),
            first_response_ms=first_response_ms,
            usage=usage,
            estimated=estimated,
        )

    @staticmethod
    def _extract_usage(frame: dict[str, Any]) -> Usage | None:
        """Usage sits at the top level or, for some providers, on the first choice.

        A block whose counts are not integers is treated as absent.
        """
        candidates = [frame.get("usage")]
        choices = frame.get("choices") or []
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            candidates.append(choices[0].get("usage"))
        for raw in candidates:
            if not isinstance(raw, dict):
                continue
            try:
                usage = Usage.model_validate({key: raw.get(key) or 0 for key in Usage.model_fields})
            except ValidationError:
                continue
            if usage.total_tokens > 0:
                return usage
        return None

    @staticmethod
    def _decode_frame(raw: str) -> dict[str, Any]:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"invalid JSON: {raw[:80]!r}") from exc
        if not isinstance(frame, dict):
            raise DecodeError(f"unexpected frame type: {type(frame).__name__}")
        return frame

    def _json_or_error(self, response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            raise ProviderApiError(
                self.name,
                self._error_message(response.content, response.reason_phrase),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderApiError(self.name, "invalid JSON response", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise ProviderApiError(self.name, "unexpected response body", status_code=response.status_code)
        if "error" in data and not data.get("choices"):
            raise ProviderApiError(
                self.name,
                self._error_text(data) or "request failed",
                status_code=response.status_code,
            )
        return cast(dict[str, Any], data)

    @classmethod
    def _error_message(cls, body: bytes, fallback: str) -> str:
        text = body.decode("utf-8", errors="replace").strip()
        try:
            data = json.loads(text)
        except ValueError:
            return text or fallback
        if isinstance(data, dict):
            return cls._error_text(data) or text or fallback
        return text or fallback

    @staticmethod
    def _error_text(data: dict[str, Any]) -> str:
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
        if data.get("code"):
            return str(data["code"])
        return ""


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__
