"""Provider table: one entry of request/response functions per vendor.

Every entry turns the neutral ``Message`` list and ``RequestOptions`` into a
vendor request, sends it, and normalizes the vendor response back into an
``LLMResponse``. Vendor quirks live in the entry, not in the callers.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from .models import LLMResponse, Message, RequestOptions, ToolCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSpec:
    """Functions and defaults describing one provider."""
    name: str
    default_model: str
    api_key_env: str
    create_client: Callable[[str], Any]
    build_request: Callable[[str, List[Message], RequestOptions], Dict[str, Any]]
    send: Callable[[Any, Dict[str, Any]], Awaitable[Any]]
    parse_response: Callable[[Any], LLMResponse]
    stream: Callable[[Any, Dict[str, Any]], AsyncIterator[str]]
    supported_hints: frozenset = field(default_factory=frozenset)


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions (OpenAI, Together, Moonshot, OpenRouter)
# ---------------------------------------------------------------------------

def _create_openai_client(
    api_key: str,
    base_url: Optional[str] = None,
    default_headers: Optional[Dict[str, str]] = None,
):
    from openai import AsyncOpenAI

    kwargs: Dict[str, Any] = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    if default_headers:
        kwargs["default_headers"] = default_headers
    return AsyncOpenAI(**kwargs)


def to_openai_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    """Convert neutral messages to chat-completions message dicts."""
    openai_messages = []
    for msg in messages:
        openai_msg: Dict[str, Any] = {"role": msg.role, "content": msg.content}
        if msg.tool_calls:
            openai_msg["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in msg.tool_calls
            ]
        if msg.role == "tool":
            openai_msg["tool_call_id"] = msg.tool_call_id
            if msg.name:
                openai_msg["name"] = msg.name
            openai_msg["content"] = msg.content or ""
        openai_messages.append(openai_msg)
    return openai_messages


def build_openai_request(
    model: str,
    messages: List[Message],
    options: RequestOptions,
    supported_hints: frozenset = frozenset(),
) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "model": model,
        "messages": to_openai_messages(messages),
        "temperature": options.temperature,
    }
    if options.tools:
        kwargs["tools"] = options.tools
        kwargs["tool_choice"] = "auto"
    if options.response_format and "response_format" in supported_hints:
        kwargs["response_format"] = options.response_format
    if options.reasoning_effort and "reasoning_effort" in supported_hints:
        kwargs["reasoning_effort"] = options.reasoning_effort
    return kwargs


async def send_openai_request(client, request: Dict[str, Any]):
    return await client.chat.completions.create(**request)


def parse_openai_response(response) -> LLMResponse:
    """Normalize a chat-completions response."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return LLMResponse(content=None, tool_calls=None, finish_reason=None)

    choice = choices[0]
    message = choice.message
    content = message.content or None

    tool_calls = None
    if getattr(message, "tool_calls", None):
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in message.tool_calls
        ]

    # Some OpenAI-compatible hosts report "stop" alongside tool calls
    finish_reason = "tool_calls" if tool_calls else choice.finish_reason

    usage = None
    if getattr(response, "usage", None):
        usage = {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }

    return LLMResponse(
        content=content,
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        usage=usage,
    )


async def stream_openai_request(client, request: Dict[str, Any]) -> AsyncIterator[str]:
    stream = await client.chat.completions.create(**request, stream=True)
    async with stream:
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            text = getattr(delta, "content", None)
            if text:
                yield text


def _openai_compatible(
    name: str,
    default_model: str,
    api_key_env: str,
    base_url: Optional[str] = None,
    default_headers: Optional[Dict[str, str]] = None,
    supported_hints: frozenset = frozenset({"response_format", "reasoning_effort"}),
) -> ProviderSpec:
    return ProviderSpec(
        name=name,
        default_model=default_model,
        api_key_env=api_key_env,
        create_client=partial(
            _create_openai_client,
            base_url=base_url,
            default_headers=default_headers,
        ),
        build_request=partial(build_openai_request, supported_hints=supported_hints),
        send=send_openai_request,
        parse_response=parse_openai_response,
        stream=stream_openai_request,
        supported_hints=supported_hints,
    )


# ---------------------------------------------------------------------------
# Anthropic Messages API
# ---------------------------------------------------------------------------

_ANTHROPIC_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


def _create_anthropic_client(api_key: str):
    import anthropic

    return anthropic.AsyncAnthropic(api_key=api_key)


def _decode_arguments(arguments: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Replaying tool call with undecodable arguments: {arguments[:200]}")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def to_anthropic_messages(messages: List[Message]):
    """Split out the system prompt and convert the rest to content blocks.

    Consecutive tool responses are merged into one user message, since the
    Messages API expects every tool_result of a turn in a single message.
    """
    system_content = ""
    conversation_messages: List[Dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            system_content += (msg.content or "") + "\n"
        elif msg.role == "tool":
            result_block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content or "",
            }
            previous = conversation_messages[-1] if conversation_messages else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(block.get("type") == "tool_result" for block in previous["content"])
            ):
                previous["content"].append(result_block)
            else:
                conversation_messages.append({"role": "user", "content": [result_block]})
        elif msg.role == "assistant" and msg.tool_calls:
            content_blocks: List[Dict[str, Any]] = []
            if msg.content:
                content_blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                content_blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": _decode_arguments(tc.arguments),
                })
            conversation_messages.append({"role": "assistant", "content": content_blocks})
        else:
            conversation_messages.append({"role": msg.role, "content": msg.content or ""})

    return system_content.strip(), conversation_messages


def build_anthropic_request(
    model: str,
    messages: List[Message],
    options: RequestOptions,
) -> Dict[str, Any]:
    system_content, conversation_messages = to_anthropic_messages(messages)
    kwargs: Dict[str, Any] = {
        "model": model,
        "max_tokens": options.max_tokens,
        "messages": conversation_messages,
        "temperature": options.temperature,
    }
    if system_content:
        kwargs["system"] = system_content

    if options.tools:
        anthropic_tools = []
        for tool in options.tools:
            if tool.get("type") == "function":
                func = tool["function"]
                anthropic_tools.append({
                    "name": func["name"],
                    "description": func.get("description", ""),
                    "input_schema": func.get("parameters") or {"type": "object", "properties": {}},
                })
        if anthropic_tools:
            kwargs["tools"] = anthropic_tools
    # response_format and reasoning_effort have no Messages API equivalent
    return kwargs


async def send_anthropic_request(client, request: Dict[str, Any]):
    return await client.messages.create(**request)


def parse_anthropic_response(response) -> LLMResponse:
    content = ""
    tool_calls = []

    for block in response.content or []:
        if block.type == "text":
            content += block.text
        elif block.type == "tool_use":
            tool_calls.append(ToolCall(
                id=block.id,
                name=block.name,
                arguments=json.dumps(block.input or {}),
            ))

    usage = None
    if getattr(response, "usage", None):
        usage = {
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
        }

    finish_reason = _ANTHROPIC_STOP_REASONS.get(response.stop_reason, response.stop_reason)
    if tool_calls:
        finish_reason = "tool_calls"

    return LLMResponse(
        content=content or None,
        tool_calls=tool_calls or None,
        finish_reason=finish_reason,
        usage=usage,
    )


async def stream_anthropic_request(client, request: Dict[str, Any]) -> AsyncIterator[str]:
    stream = await client.messages.create(**request, stream=True)
    async with stream:
        async for event in stream:
            if event.type == "content_block_delta" and getattr(event.delta, "type", None) == "text_delta":
                yield event.delta.text


ANTHROPIC = ProviderSpec(
    name="anthropic",
    default_model="claude-sonnet-4-20250514",
    api_key_env="ANTHROPIC_API_KEY",
    create_client=_create_anthropic_client,
    build_request=build_anthropic_request,
    send=send_anthropic_request,
    parse_response=parse_anthropic_response,
    stream=stream_anthropic_request,
)


PROVIDERS: Dict[str, ProviderSpec] = {
    "openai": _openai_compatible(
        name="openai",
        default_model="gpt-5.2",
        api_key_env="OPENAI_API_KEY",
    ),
    "together": _openai_compatible(
        name="together",
        default_model="moonshotai/Kimi-K2-Instruct-0905",
        api_key_env="TOGETHER_API_KEY",
        base_url="https://api.together.xyz/v1",
    ),
    # Moonshot rejects reasoning_effort
    "kimi": _openai_compatible(
        name="kimi",
        default_model="kimi-k2-0905-preview",
        api_key_env="MOONSHOT_API_KEY",
        base_url="https://api.moonshot.ai/v1",
        supported_hints=frozenset({"response_format"}),
    ),
    "openrouter": _openai_compatible(
        name="openrouter",
        default_model="moonshotai/kimi-k2-0905",
        api_key_env="OPENROUTER_API_KEY",
        base_url="https://openrouter.ai/api/v1",
        default_headers={"X-Title": "Half-Formed Thought"},
        supported_hints=frozenset({"response_format"}),
    ),
    "anthropic": ANTHROPIC,
}


def get_provider(name: str) -> ProviderSpec:
    """Look up a provider entry by tag."""
    try:
        return PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unsupported LLM provider: {name}") from None
