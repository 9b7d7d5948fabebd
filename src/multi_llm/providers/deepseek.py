"""DeepSeek provider implementation."""

from __future__ import annotations

from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek chat and reasoner models.

    ``deepseek-reasoner`` streams its chain of thought on the
    ``reasoning_content`` delta channel.
    """

    name = "deepseek"
