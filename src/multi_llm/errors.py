"""Package specific exception hierarchy."""


class MultiLLMError(Exception):
    """Base exception for multi_llm package."""


class UnsupportedProviderError(MultiLLMError):
    """Raised when a provider identifier is not known."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not supported.")
        self.provider = provider


class UnsupportedFeatureError(MultiLLMError):
    """Raised when a requested feature is unsupported by a provider."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"Feature '{feature}' is not supported.")


class MissingCredentialError(MultiLLMError):
    """Raised when no credential has been registered for a provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No API key configured for provider '{provider}'.")
        self.provider = provider


class ProviderError(MultiLLMError):
    """Represents provider-specific HTTP, transport or API errors."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{provider}: {message}{suffix}")
        self.provider = provider
        self.message = message
        self.status_code = status_code


class TransportError(ProviderError):
    """Network failure: refused connection, DNS, abrupt close."""


class ProviderApiError(ProviderError):
    """The provider answered with a non-2xx status or an error payload."""

    def __init__(self, provider: str, message: str, status_code: int) -> None:
        super().__init__(provider, message, status_code=status_code)


class RequestTimeoutError(MultiLLMError, TimeoutError):
    """A non-streaming request exceeded the configured deadline."""

    def __init__(self, provider: str, timeout_s: float) -> None:
        super().__init__(f"{provider}: request timed out after {timeout_s:g}s")
        self.provider = provider
        self.timeout_s = timeout_s


class DecodeError(MultiLLMError):
    """A single stream frame could not be decoded."""


class QueueClearedError(MultiLLMError):
    """The request was still outstanding when the queues were cleared."""

    def __init__(self) -> None:
        super().__init__("Queue cleared")
