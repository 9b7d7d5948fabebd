"""Provider definitions for multi_llm."""

from .aliyun import AliyunProvider
from .base import BaseProvider, EventSink, ModelCapabilities
from .bigmodel import BigModelProvider
from .claude import ClaudeProvider
from .deepseek import DeepSeekProvider
from .kimi import KimiProvider
from .openai_compat import OpenAICompatibleProvider
from .volcengine import VolcengineProvider

__all__ = [
    "BaseProvider",
    "EventSink",
    "ModelCapabilities",
    "OpenAICompatibleProvider",
    "DeepSeekProvider",
    "AliyunProvider",
    "VolcengineProvider",
    "KimiProvider",
    "ClaudeProvider",
    "BigModelProvider",
]
