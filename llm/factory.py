"""LLM service factory."""

import os
import logging
from typing import Optional

from .errors import LLMConfigurationError
from .providers import PROVIDERS, get_provider
from .service import LLMService

logger = logging.getLogger(__name__)


def create_llm_service(
    provider: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None
) -> LLMService:
    """
    Create an LLM service for the specified provider.

    Args:
        provider: Provider tag (openai, anthropic, together, kimi, openrouter)
        api_key: API key for the provider (falls back to its env var)
        model: Optional model override

    Returns:
        Configured LLM service

    Raises:
        LLMConfigurationError: If provider is not supported or no key is available
    """
    try:
        spec = get_provider(provider)
    except ValueError as e:
        raise LLMConfigurationError(
            f"{e}. Choose one of: {', '.join(PROVIDERS)}"
        ) from None

    api_key = api_key or os.environ.get(spec.api_key_env)
    if not api_key:
        raise LLMConfigurationError(
            f"No API key for {spec.name}. Set {spec.api_key_env}."
        )

    try:
        client = spec.create_client(api_key)
    except ImportError as e:
        raise LLMConfigurationError(f"SDK for {spec.name} not installed: {e}") from e

    service = LLMService(spec, client, model=model)
    logger.info(f"LLM service initialized: {spec.name} ({service.get_model_name()})")
    return service
