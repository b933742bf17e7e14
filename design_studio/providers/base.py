"""Abstract base for all text completion providers."""

from abc import ABC, abstractmethod


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class RateLimitedError(ProviderError):
    """The provider rejected the call because of rate limiting (HTTP 429)."""


class TransportError(ProviderError):
    """Any non rate-limit failure: timeout, SDK error, empty output."""


_RATE_LIMIT_MARKERS = ("rate limit", "resource_exhausted", "too many requests")


def is_rate_limit_error(exc: BaseException) -> bool:
    """Classify a raw SDK exception as a rate-limit signal.

    Checks the HTTP status attributes the SDKs expose (``status_code`` for
    anthropic/openai, ``code`` for google-genai) and falls back to the message.
    """
    for attr in ("status_code", "code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    text = str(exc).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def wrap_sdk_error(provider_name: str, exc: Exception) -> ProviderError:
    """Convert an SDK exception into RateLimitedError or TransportError."""
    if is_rate_limit_error(exc):
        return RateLimitedError(provider_name, f"Rate limited: {exc}")
    return TransportError(provider_name, f"API call failed: {exc}")


class TextCompletionProvider(ABC):
    """Abstract base for all text completion providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Generate a completion for the given prompt.

        Args:
            prompt: The full prompt text to send.

        Returns:
            The generated text.

        Raises:
            RateLimitedError: When the provider signals rate limiting.
            TransportError: On any other API failure, timeout, or empty output.
        """
        ...
