"""LLM call facade implementing the provider-neutral call contract."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from .cancellation import CancellationToken
from .errors import LLMAbortedError, LLMEmptyResponseError, LLMProviderError
from .models import LLMResponse, Message, RequestOptions
from .providers import ProviderSpec

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


async def _next_chunk(iterator: AsyncIterator[str]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


class LLMService:
    """Sends chat requests through one provider table entry."""

    def __init__(self, spec: ProviderSpec, client: Any, model: Optional[str] = None):
        """
        Initialize the service.

        Args:
            spec: Provider table entry
            client: SDK client created by ``spec.create_client``
            model: Model override (default: the provider's default model)
        """
        self.spec = spec
        self.client = client
        self.model = model or spec.default_model

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return self.spec.name

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model

    async def call_llm(
        self,
        messages: List[Message],
        *,
        temperature: float = 0.6,
        response_format: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        reasoning_effort: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """
        Send one chat request and return the normalized response.

        Args:
            messages: Full message history, system prompt included
            temperature: Sampling temperature
            response_format: Optional response format hint (ignored where unsupported)
            tools: Optional tool definitions in OpenAI function format
            reasoning_effort: Optional reasoning effort hint (ignored where unsupported)
            cancellation: Optional token; firing it aborts the call

        Returns:
            LLMResponse with content, tool calls and finish reason

        Raises:
            LLMAbortedError: The token fired before the response arrived
            LLMEmptyResponseError: No tools requested and nothing returned
            LLMProviderError: Any other provider failure
        """
        options = RequestOptions(
            temperature=temperature,
            response_format=response_format,
            tools=tools,
            reasoning_effort=reasoning_effort,
        )
        request = self.spec.build_request(self.model, messages, options)

        try:
            if cancellation is not None:
                raw = await cancellation.guard(self.spec.send(self.client, request))
            else:
                raw = await self.spec.send(self.client, request)
        except LLMAbortedError:
            logger.info(f"{self.spec.name} call aborted")
            raise
        except Exception as e:
            logger.error(f"{self.spec.name} API error: {e}")
            raise LLMProviderError(str(e), provider=self.spec.name) from e

        response = self.spec.parse_response(raw)

        if not tools and not response.content and not response.tool_calls:
            logger.error(f"Empty response from {self.spec.name} API: {raw!r}")
            raise LLMEmptyResponseError("Empty response from API")

        return response

    async def stream_llm(
        self,
        messages: List[Message],
        *,
        temperature: float = 0.6,
        response_format: Optional[Dict[str, Any]] = None,
        reasoning_effort: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas of a streamed response."""
        options = RequestOptions(
            temperature=temperature,
            response_format=response_format,
            reasoning_effort=reasoning_effort,
        )
        request = self.spec.build_request(self.model, messages, options)
        iterator = self.spec.stream(self.client, request).__aiter__()

        try:
            while True:
                if cancellation is not None:
                    chunk = await cancellation.guard(_next_chunk(iterator))
                else:
                    chunk = await _next_chunk(iterator)
                if chunk is _END_OF_STREAM:
                    break
                yield chunk
        except LLMAbortedError:
            logger.info(f"{self.spec.name} stream aborted")
            raise
        except Exception as e:
            logger.error(f"{self.spec.name} streaming error: {e}")
            raise LLMProviderError(str(e), provider=self.spec.name) from e
        finally:
            # Releases the HTTP response on abort, failure or early exit
            await iterator.aclose()
