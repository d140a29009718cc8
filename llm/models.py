"""Provider-neutral chat message models."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel


class ToolCall(BaseModel):
    """Tool call emitted by the model inside an assistant message."""
    id: str
    name: str
    arguments: str = "{}"  # JSON-encoded argument object


class Message(BaseModel):
    """Chat message."""
    role: str  # "system", "user", "assistant", "tool"
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None  # For assistant messages with tool calls
    tool_call_id: Optional[str] = None  # For tool responses
    name: Optional[str] = None  # Tool name, for tool responses


class LLMResponse(BaseModel):
    """Normalized response from any provider."""
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None


class RequestOptions(BaseModel):
    """Per-call hints passed to a provider's request builder."""
    temperature: float = 0.6
    response_format: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    reasoning_effort: Optional[str] = None
    max_tokens: int = 4000


def tool_response(tool_call: ToolCall, content: str) -> Message:
    """Build the tool-role message answering ``tool_call``."""
    return Message(
        role="tool",
        tool_call_id=tool_call.id,
        name=tool_call.name,
        content=content,
    )
