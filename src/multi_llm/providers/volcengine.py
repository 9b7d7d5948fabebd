"""Volcengine Ark (Doubao) provider implementation."""

from __future__ import annotations

from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class VolcengineProvider(OpenAICompatibleProvider):
    """Doubao models; vision models accept ``image_url`` content parts."""

    name = "volcengine"
