"""LLM provider adapter layer."""

from .models import Message, ToolCall, LLMResponse, RequestOptions
from .errors import (
    LLMError,
    LLMProviderError,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMAbortedError,
)
from .cancellation import CancellationToken
from .service import LLMService
from .factory import create_llm_service

__all__ = [
    "Message",
    "ToolCall",
    "LLMResponse",
    "RequestOptions",
    "LLMError",
    "LLMProviderError",
    "LLMConfigurationError",
    "LLMEmptyResponseError",
    "LLMAbortedError",
    "CancellationToken",
    "LLMService",
    "create_llm_service",
]
