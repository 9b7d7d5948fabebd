"""Aliyun Bailian (DashScope compatible mode) provider implementation."""

from __future__ import annotations

from multi_llm import pricing
from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class AliyunProvider(OpenAICompatibleProvider):
    """Qwen models through the OpenAI-compatible DashScope endpoint.

    DashScope only reports usage when asked to. When streaming it sends the
    counts on a trailing frame whose ``choices`` array is empty.
    """

    name = "aliyun"
    default_temperature = 0.85
    default_max_tokens = 2000
    max_tokens_cap = 2000
    extra_body = {"top_p": 0.8, "include_usage": True}
    stream_extra_body = {"stream_options": {"include_usage": True}}
    extra_headers = {"Accept": "application/json"}

    def estimate_tokens(self, text: str) -> int:
        # Qwen tokenizes Chinese text more densely than Latin text
        return pricing.estimate_tokens_cjk(text)
