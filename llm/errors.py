"""Exceptions raised by the LLM layer."""


class LLMError(Exception):
    """Base class for LLM layer failures."""


class LLMProviderError(LLMError):
    """Generic failure raised by an LLM provider."""

    def __init__(self, message: str, *, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class LLMConfigurationError(LLMError):
    """Raised when a provider cannot be selected or authenticated."""


class LLMEmptyResponseError(LLMError):
    """Raised when a call without tools returns neither content nor tool calls."""


class LLMAbortedError(LLMError):
    """Raised when a call is cancelled through its cancellation token.

    Callers treat this as a no-op outcome rather than a failure.
    """
