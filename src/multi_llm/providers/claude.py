"""Claude provider implementation (302.AI OpenAI-compatible relay)."""

from __future__ import annotations

from typing import Any

from multi_llm.providers.openai_compat import OpenAICompatibleProvider


class ClaudeProvider(OpenAICompatibleProvider):
    name = "claude"
    extra_headers = {"Accept": "application/json"}

    def _image_part(self, url: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": url, "detail": "auto"}}
