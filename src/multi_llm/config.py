"""Static provider table and environment-driven settings."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from multi_llm.types import ProviderConfig

PROVIDERS: dict[str, ProviderConfig] = {
    config.id: config
    for config in (
        ProviderConfig(
            id="deepseek",
            display_name="DeepSeek",
            base_url="https://api.deepseek.com",
            chat_path="/v1/chat/completions",
        ),
        ProviderConfig(
            id="aliyun",
            display_name="Aliyun Bailian (Qwen)",
            base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
        ),
        ProviderConfig(
            id="volcengine",
            display_name="Volcengine Ark (Doubao)",
            base_url="https://ark.cn-beijing.volces.com/api/v3",
            supports_vision=True,
        ),
        ProviderConfig(
            id="kimi",
            display_name="Moonshot Kimi",
            base_url="https://api.moonshot.cn/v1",
        ),
        ProviderConfig(
            id="claude",
            display_name="Claude (302.AI relay)",
            base_url="https://api.302ai.cn/v1",
            supports_vision=True,
        ),
        ProviderConfig(
            id="bigmodel",
            display_name="Zhipu BigModel (GLM)",
            base_url="https://open.bigmodel.cn/api/paas/v4",
        ),
    )
}


class Settings(BaseSettings):
    """Runtime settings, read from ``MULTI_LLM_*`` variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="MULTI_LLM_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    max_concurrent_requests: int = Field(default=5, ge=1)
    request_timeout_s: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_s: float = Field(default=1.0, ge=0)
    http_timeout_s: float = Field(default=60.0, gt=0)
    log_level: str = "INFO"

    # Provider keys use the conventional unprefixed names.
    deepseek_api_key: str = Field(default="", validation_alias="DEEPSEEK_API_KEY")
    aliyun_api_key: str = Field(default="", validation_alias="ALIYUN_API_KEY")
    volcengine_api_key: str = Field(default="", validation_alias="VOLCENGINE_API_KEY")
    kimi_api_key: str = Field(default="", validation_alias="KIMI_API_KEY")
    claude_api_key: str = Field(default="", validation_alias="CLAUDE_API_KEY")
    bigmodel_api_key: str = Field(default="", validation_alias="BIGMODEL_API_KEY")

    def credentials(self) -> dict[str, str]:
        """Return the non-blank provider keys."""
        keys = {provider: getattr(self, f"{provider}_api_key") for provider in PROVIDERS}
        return {provider: key.strip() for provider, key in keys.items() if key.strip()}


def configure_logging(level: str | int = logging.INFO) -> None:
    """Basic console logging for scripts embedding the client."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
