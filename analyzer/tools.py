"""Annotation tools the model can call during analysis."""

import json
import re
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from llm.models import ToolCall
from schemas.annotations import AnnotationResult, AnnotationType, Record

logger = logging.getLogger(__name__)

_EDGE_PUNCTUATION = re.compile(r"^[.,:;!?]+|[.,:;!?]+$")

_TEXT_SPAN_DESCRIPTION = (
    'The exact span of text being annotated. Must be an exact string match to the content '
    '(no "...", correcting spelling/punctuation or starting/ending with punctuation/whitespace).'
)


def clean_text_span(text_span: str) -> str:
    """Trim whitespace and one run of edge punctuation from a model-supplied span."""
    return _EDGE_PUNCTUATION.sub("", text_span.strip()).strip()


class ToolExecutionError(Exception):
    """Tool failure that is reported back to the model."""


class ToolContext:
    """State shared by tool calls within one analyze() invocation."""

    def __init__(
        self,
        note_content: str = "",
        on_annotation: Optional[Callable[[AnnotationResult], None]] = None,
    ):
        self.note_content = note_content
        self.on_annotation = on_annotation
        self.results: List[AnnotationResult] = []

    def add(self, annotation: AnnotationResult) -> None:
        self.results.append(annotation)
        if self.on_annotation is not None:
            self.on_annotation(annotation)


class ToolResult(BaseModel):
    """Result from tool execution."""
    tool_name: str
    success: bool
    result: Any = None
    error: Optional[str] = None

    def to_content(self) -> str:
        """Render as tool response content."""
        if not self.success:
            return f"Error: {self.error}"
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result)


class Tool(ABC):
    """Abstract base class for tools."""
    name: str
    description: str
    parameters: Dict[str, Any]
    args_model: Type[BaseModel]

    @abstractmethod
    def run(self, args: BaseModel, context: ToolContext) -> Any:
        """Execute with validated arguments; raise ToolExecutionError on bad input."""

    def get_definition(self) -> Dict:
        """Get OpenAI-compatible tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }


class AnnotateArgs(BaseModel):
    textSpan: str
    records: List[Record] = Field(min_length=1, max_length=3)


class AnnotateTool(Tool):
    """Attach research sources to a span of the note."""

    name = "annotate"
    description = (
        "Annotate a text span with research sources and insights. Call this tool multiple "
        "times to annotate different text spans. Each call should annotate one text span."
    )
    parameters = {
        "type": "object",
        "properties": {
            "textSpan": {
                "type": "string",
                "description": _TEXT_SPAN_DESCRIPTION,
            },
            "records": {
                "type": "array",
                "minItems": 1,
                "maxItems": 3,
                "description": "Array of 1-3 record objects for this text span, providing diverse perspectives from different domains",
                "items": {
                    "type": "object",
                    "properties": {
                        "description": {
                            "type": "string",
                            "description": "A short summary of the source (0-4 sentences)"
                        },
                        "title": {
                            "type": "string",
                            "description": "The name of the source (book title, essay title, etc)"
                        },
                        "author": {
                            "type": "string",
                            "description": "The name of the author (optional)"
                        },
                        "domain": {
                            "type": "string",
                            "description": "The domain of the source (history, physics, philosophy, poetry, art, dance, typography, religion, etc)"
                        },
                        "search_query": {
                            "type": "string",
                            "description": "A search query that will be used by a search engine to find more information about the source"
                        }
                    },
                    "required": ["description", "title", "domain", "search_query"]
                }
            }
        },
        "required": ["textSpan", "records"]
    }
    args_model = AnnotateArgs

    def run(self, args: AnnotateArgs, context: ToolContext) -> Any:
        text_span = _checked_span(args.textSpan, context)
        context.add(AnnotationResult(
            type=AnnotationType.REFERENCE,
            text_span=text_span,
            records=args.records,
        ))
        return {"success": True, "textSpan": text_span, "records": len(args.records)}


class ExtendListArgs(BaseModel):
    textSpan: str
    extensions: List[str] = Field(min_length=1, max_length=4)


class ExtendListTool(Tool):
    """Propose further entries for a list in the note."""

    name = "extendList"
    description = (
        'Extend a list in the document by adding more entries. Lists can be identified by '
        'repeated use of "and/or" conjunctions or by literal bulletpointed lists with dashes. '
        'Provide 1-4 additional entries that extend the list in a meaningful way.'
    )
    parameters = {
        "type": "object",
        "properties": {
            "textSpan": {
                "type": "string",
                "description": (
                    'The exact span of text containing the list to extend. Must be an exact string '
                    'match to the content (no "...", correcting spelling/punctuation or '
                    'starting/ending with punctuation/whitespace).'
                ),
            },
            "extensions": {
                "type": "array",
                "minItems": 1,
                "maxItems": 4,
                "description": "Array of 1-4 string entries that extend the list",
                "items": {"type": "string"}
            }
        },
        "required": ["textSpan", "extensions"]
    }
    args_model = ExtendListArgs

    def run(self, args: ExtendListArgs, context: ToolContext) -> Any:
        text_span = _checked_span(args.textSpan, context)
        context.add(AnnotationResult(
            type=AnnotationType.LIST,
            text_span=text_span,
            extensions=args.extensions,
        ))
        return {"success": True, "textSpan": text_span, "extensions": len(args.extensions)}


class GetNoteContentArgs(BaseModel):
    pass


class GetNoteContentTool(Tool):
    """Read-only access to the full note."""

    name = "getNoteContent"
    description = (
        "Get the full current content of the note. Use this when you need to see the "
        "complete text to understand context or find exact text spans."
    )
    parameters = {
        "type": "object",
        "properties": {},
    }
    args_model = GetNoteContentArgs

    def run(self, args: GetNoteContentArgs, context: ToolContext) -> Any:
        return context.note_content


def _checked_span(raw: str, context: ToolContext) -> str:
    text_span = clean_text_span(raw)
    if not text_span:
        raise ToolExecutionError("textSpan is empty after trimming whitespace and punctuation")
    if context.note_content and text_span not in context.note_content:
        # Anchoring is the editor's job; keep the annotation
        logger.warning(f"textSpan not found verbatim in note: {text_span[:80]!r}")
    return text_span


def default_tools() -> List[Tool]:
    return [AnnotateTool(), GetNoteContentTool(), ExtendListTool()]


class ToolTable:
    """Dispatches tool calls by name."""

    def __init__(self, tools: Optional[List[Tool]] = None):
        """
        Initialize the table.

        Args:
            tools: Tools to register (default: annotate, getNoteContent, extendList)
        """
        tools = tools if tools is not None else default_tools()
        self.tools = {tool.name: tool for tool in tools}
        self.tool_definitions = [tool.get_definition() for tool in tools]

    def execute(self, tool_call: ToolCall, context: ToolContext) -> ToolResult:
        """
        Execute one tool call.

        Every failure is returned as an unsuccessful ToolResult so the model
        can retry; nothing here raises.
        """
        tool = self.tools.get(tool_call.name)
        if tool is None:
            logger.warning(f"Model called unknown tool '{tool_call.name}'")
            return ToolResult(
                tool_name=tool_call.name,
                success=False,
                error=f"Unknown tool '{tool_call.name}'",
            )

        try:
            raw_args = json.loads(tool_call.arguments or "{}")
            args = tool.args_model.model_validate(raw_args)
            result = tool.run(args, context)
        except json.JSONDecodeError as e:
            error = f"Arguments are not valid JSON: {e.msg}"
        except ValidationError as e:
            error = f"Invalid arguments: {e.errors(include_url=False)}"
        except ToolExecutionError as e:
            error = str(e)
        else:
            return ToolResult(tool_name=tool.name, success=True, result=result)

        logger.warning(f"Tool {tool.name} failed: {error}")
        return ToolResult(tool_name=tool.name, success=False, error=error)
