"""Annotation analysis: tool-calling conversation and one-shot block mode."""

from .tools import (
    Tool,
    ToolResult,
    ToolContext,
    ToolTable,
    AnnotateTool,
    ExtendListTool,
    GetNoteContentTool,
    clean_text_span,
)
from .loop import Analyzer, AnalyzerState, TurnOutcome
from .oneshot import annotate_blocks, annotate_block
from .patch import make_patch, count_content_lines
from .blocks import collapse_blocks, format_blocks

__all__ = [
    "Tool",
    "ToolResult",
    "ToolContext",
    "ToolTable",
    "AnnotateTool",
    "ExtendListTool",
    "GetNoteContentTool",
    "clean_text_span",
    "Analyzer",
    "AnalyzerState",
    "TurnOutcome",
    "annotate_blocks",
    "annotate_block",
    "make_patch",
    "count_content_lines",
    "collapse_blocks",
    "format_blocks",
]
