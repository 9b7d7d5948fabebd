"""Moonshot Kimi provider implementation."""

from __future__ import annotations

from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class KimiProvider(OpenAICompatibleProvider):
    """Moonshot models. Usage arrives on ``choices[0].usage`` of the last content frame."""

    name = "kimi"
    default_temperature = 0.3
    default_max_tokens = 2048
    max_tokens_cap = 128000
