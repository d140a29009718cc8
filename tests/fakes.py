"""Scripted provider used in place of a real vendor SDK."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from llm.models import LLMResponse, ToolCall
from llm.providers import ProviderSpec
from llm.service import LLMService


def text_response(text: Optional[str]) -> LLMResponse:
    return LLMResponse(content=text, finish_reason="stop")


def tool_calls_response(*calls) -> LLMResponse:
    """Build a tool-calling turn from ``(name, args)`` pairs."""
    return LLMResponse(
        finish_reason="tool_calls",
        tool_calls=[
            ToolCall(id=f"call_{index}", name=name, arguments=json.dumps(args))
            for index, (name, args) in enumerate(calls)
        ],
    )


def annotate_args(text_span: str, title: str = "Walden") -> Dict[str, Any]:
    return {
        "textSpan": text_span,
        "records": [
            {
                "description": "An account of two years spent in a cabin.",
                "title": title,
                "author": "Henry David Thoreau",
                "domain": "philosophy",
                "search_query": f"{title} Thoreau",
            }
        ],
    }


class ScriptedProvider:
    """
    Serves canned responses in order and records every request.

    Items that are exceptions are raised instead of returned. When ``hold``
    is set, the next request waits on it before answering.
    """

    def __init__(self, responses: Optional[List[Any]] = None, chunks: Optional[List[str]] = None):
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.requests: List[Dict[str, Any]] = []
        self.hold: Optional[asyncio.Event] = None
        self.stream_closed = False

    async def send(self, client, request):
        self.requests.append(request)
        hold, self.hold = self.hold, None
        if hold is not None:
            await hold.wait()
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(self, client, request):
        self.requests.append(request)
        try:
            for chunk in self.chunks:
                await asyncio.sleep(0)
                yield chunk
        finally:
            self.stream_closed = True

    def spec(self) -> ProviderSpec:
        return ProviderSpec(
            name="scripted",
            default_model="scripted-model",
            api_key_env="SCRIPTED_API_KEY",
            create_client=lambda api_key: object(),
            build_request=lambda model, messages, options: {
                "model": model,
                "messages": list(messages),
                "options": options,
            },
            send=self.send,
            parse_response=lambda raw: raw,
            stream=self.stream,
        )

    def service(self) -> LLMService:
        return LLMService(self.spec(), client=object())


async def wait_for_requests(provider: ScriptedProvider, count: int = 1):
    """Yield to the loop until ``count`` requests have been sent."""
    for _ in range(1000):
        if len(provider.requests) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} requests, saw {len(provider.requests)}")
