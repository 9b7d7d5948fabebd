"""Zhipu BigModel (GLM) provider implementation."""

from __future__ import annotations

from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class BigModelProvider(OpenAICompatibleProvider):
    name = "bigmodel"
