"""Provider construction and the credential-keyed adapter registry."""

from __future__ import annotations

import logging
from typing import Any

from multi_llm.config import PROVIDERS
from multi_llm.errors import MissingCredentialError, UnsupportedProviderError
from multi_llm.providers import (
    AliyunProvider,
    BaseProvider,
    BigModelProvider,
    ClaudeProvider,
    DeepSeekProvider,
    KimiProvider,
    VolcengineProvider,
)

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[BaseProvider]] = {
    cls.name: cls
    for cls in (
        DeepSeekProvider,
        AliyunProvider,
        VolcengineProvider,
        KimiProvider,
        ClaudeProvider,
        BigModelProvider,
    )
}

# Historical names still accepted from stored settings.
ALIASES = {"doubao": "volcengine"}


def normalize_provider(provider: str) -> str:
    """Lookup key for a provider name: trimmed, lowercased, aliases resolved."""
    key = provider.strip().lower()
    return ALIASES.get(key, key)


def canonical_provider(provider: str) -> str:
    """Like ``normalize_provider`` but only accepts built-in providers."""
    key = normalize_provider(provider)
    if key not in PROVIDER_CLASSES:
        raise UnsupportedProviderError(provider)
    return key


def create_provider(provider: str, api_key: str, **options: Any) -> BaseProvider:
    """Construct the adapter for ``provider`` authenticated with ``api_key``.

    Extra options (``base_url``, ``timeout_s``, ``transport``) are passed to
    the adapter constructor.
    """
    if not api_key or not api_key.strip():
        raise ValueError(f"An API key is required for provider '{provider}'")
    cls = PROVIDER_CLASSES[canonical_provider(provider)]
    return cls(api_key=api_key.strip(), **options)


class AdapterRegistry:
    """Maps provider ids to constructed adapters, one credential per provider."""

    def __init__(self, **provider_options: Any) -> None:
        self._provider_options = provider_options
        self._adapters: dict[str, BaseProvider] = {}

    def set_credential(self, provider: str, api_key: str) -> BaseProvider | None:
        """Register (or replace) the adapter for ``provider``.

        A blank key removes the provider instead. Returns the adapter that was
        replaced or removed so the caller can close it.
        """
        key = canonical_provider(provider)
        if not api_key or not api_key.strip():
            return self.remove(key)
        adapter = create_provider(key, api_key, **self._provider_options)
        previous = self._adapters.get(key)
        self._adapters[key] = adapter
        logger.info("AI service initialized for %s", key)
        return previous

    def register(self, adapter: BaseProvider) -> BaseProvider | None:
        """Install an already constructed adapter under its own name.

        The name is not checked against the built-in providers.
        """
        key = normalize_provider(adapter.name)
        previous = self._adapters.get(key)
        self._adapters[key] = adapter
        return previous

    def remove(self, provider: str) -> BaseProvider | None:
        key = normalize_provider(provider)
        adapter = self._adapters.pop(key, None)
        if adapter is not None:
            logger.info("AI service removed for %s", key)
        return adapter

    def get(self, provider: str) -> BaseProvider:
        key = normalize_provider(provider)
        try:
            return self._adapters[key]
        except KeyError as exc:
            raise MissingCredentialError(provider) from exc

    def has(self, provider: str) -> bool:
        return normalize_provider(provider) in self._adapters

    def status(self) -> dict[str, bool]:
        """Whether each known provider currently has a credential."""
        return {provider: provider in self._adapters for provider in PROVIDERS}

    async def aclose(self) -> None:
        adapters = list(self._adapters.values())
        self._adapters.clear()
        for adapter in adapters:
            await adapter.aclose()
