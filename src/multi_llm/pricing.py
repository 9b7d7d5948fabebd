"""Static price tables and token heuristics used when providers omit usage."""

from __future__ import annotations

import math
import re

# USD per million tokens, keyed by provider then model id.
PRICE_TABLES: dict[str, dict[str, float]] = {
    "deepseek": {
        "deepseek-chat": 0.14,
        "deepseek-coder": 0.14,
        "deepseek-reasoner": 55.0,
    },
    "aliyun": {
        "qwen-turbo": 0.8,
        "qwen-plus": 4.0,
        "qwen-max": 20.0,
        "qwen2-57b-a14b-instruct": 2.0,
    },
    "volcengine": {
        "doubao-pro-32k": 0.5,
        "doubao-pro-256k-241115": 1.0,
        "doubao-1.5-vision-pro-250328": 2.0,
    },
    "kimi": {
        "moonshot-v1-8k": 12.0,
        "moonshot-v1-32k": 24.0,
        "moonshot-v1-128k": 60.0,
        "kimi-k2-0711-preview": 80.0,
    },
    "claude": {
        "claude-sonnet-3-5-20240620": 3.0,
        "claude-opus-20240229": 15.0,
        "claude-sonnet-20240229": 3.0,
        "claude-haiku-20240307": 0.25,
        "claude-3-sonnet-20240229": 3.0,
    },
    "bigmodel": {
        "glm-4.5": 10.0,
        "glm-4.5-x": 15.0,
        "glm-4.5-v": 15.0,
        "glm-4.5-air": 5.0,
        "glm-4.5-airx": 8.0,
        "glm-4.5-flash": 0.0,
    },
}

# Rate applied to a model missing from its provider's table.
DEFAULT_RATES: dict[str, float] = {
    "deepseek": 0.14,
    "aliyun": 1.0,
    "volcengine": 1.0,
    "kimi": 12.0,
    "claude": 3.0,
    "bigmodel": 10.0,
}

# Rate for a provider with no table at all.
FALLBACK_RATE = 1.0

CHARS_PER_TOKEN = 4
CJK_WEIGHT = 1.4
LATIN_WEIGHT = 1.25
PROMPT_SHARE = 0.25

_CJK_RE = re.compile("[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\u3000-\u303f\uff00-\uffef]")


def price_per_million(provider: str, model: str) -> float:
    table = PRICE_TABLES.get(provider)
    if table is None:
        return FALLBACK_RATE
    return table.get(model, DEFAULT_RATES.get(provider, FALLBACK_RATE))


def estimate_cost(provider: str, tokens: int, model: str) -> float:
    """Approximate the USD cost of ``tokens`` on ``model``.

    Unknown providers and models are priced at a default rate; this never
    raises.
    """
    tokens = max(int(tokens or 0), 0)
    return tokens / 1_000_000 * price_per_million(provider, model)


def estimate_tokens(text: str) -> int:
    """Roughly one token per four characters."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens_cjk(text: str) -> int:
    """Per-character estimate that weights CJK text above Latin text."""
    if not text:
        return 0
    cjk = len(_CJK_RE.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk * CJK_WEIGHT + other * LATIN_WEIGHT)


def split_total(total: int) -> tuple[int, int]:
    """Split a total-only usage report into (prompt, completion) tokens."""
    if total <= 0:
        return 0, 0
    prompt = max(1, round(total * PROMPT_SHARE))
    completion = max(1, total - prompt)
    return prompt, completion
