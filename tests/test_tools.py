"""Tests for the annotation tool table."""

import json
from unittest.mock import Mock

import pytest

from analyzer.tools import ToolContext, ToolTable, clean_text_span
from llm.models import ToolCall
from schemas.annotations import AnnotationType
from fakes import annotate_args

NOTE = "Lists of things: apples and pears and plums."


def call(name, arguments):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCall(id="call_0", name=name, arguments=arguments)


class TestCleanTextSpan:
    """Test text span cleanup."""

    @pytest.mark.parametrize("raw,expected", [
        ("  foo.  ", "foo"),
        ("...foo", "foo"),
        ("foo?!", "foo"),
        ("foo. bar.", "foo. bar"),
        ("   ", ""),
        ("?!", ""),
    ])
    def test_clean_text_span(self, raw, expected):
        """Test whitespace and edge punctuation removal."""
        assert clean_text_span(raw) == expected


class TestToolTable:
    """Test tool dispatch."""

    def setup_method(self):
        """Set up test fixtures."""
        self.table = ToolTable()
        self.on_annotation = Mock()
        self.context = ToolContext(note_content=NOTE, on_annotation=self.on_annotation)

    def test_definitions_use_function_format(self):
        """Test that all three tools are offered to the model."""
        names = [d["function"]["name"] for d in self.table.tool_definitions]
        assert names == ["annotate", "getNoteContent", "extendList"]
        annotate = self.table.tool_definitions[0]["function"]["parameters"]
        assert annotate["required"] == ["textSpan", "records"]
        assert annotate["properties"]["records"]["maxItems"] == 3

    def test_annotate_cleans_span_and_records_result(self):
        """Test a successful annotate call."""
        result = self.table.execute(call("annotate", annotate_args("  apples and pears.  ")), self.context)

        assert result.success
        assert json.loads(result.to_content()) == {
            "success": True,
            "textSpan": "apples and pears",
            "records": 1,
        }
        assert len(self.context.results) == 1
        annotation = self.context.results[0]
        assert annotation.type == AnnotationType.REFERENCE
        assert annotation.text_span == "apples and pears"
        assert annotation.records[0].author == "Henry David Thoreau"
        self.on_annotation.assert_called_once_with(annotation)

    def test_blank_span_is_tool_error(self):
        """Test that a span that cleans to nothing is rejected."""
        result = self.table.execute(call("annotate", annotate_args("   ")), self.context)

        assert not result.success
        assert result.to_content().startswith("Error:")
        assert self.context.results == []
        self.on_annotation.assert_not_called()

    def test_extend_list(self):
        """Test a successful extendList call."""
        arguments = {"textSpan": "apples and pears and plums", "extensions": ["quinces", "figs"]}
        result = self.table.execute(call("extendList", arguments), self.context)

        assert result.success
        annotation = self.context.results[0]
        assert annotation.type == AnnotationType.LIST
        assert annotation.extensions == ["quinces", "figs"]

    def test_too_many_records_rejected(self):
        """Test that record count bounds are enforced."""
        arguments = annotate_args("apples")
        arguments["records"] = arguments["records"] * 4

        result = self.table.execute(call("annotate", arguments), self.context)

        assert not result.success
        assert "Invalid arguments" in result.error

    def test_too_many_extensions_rejected(self):
        """Test that extension count bounds are enforced."""
        arguments = {"textSpan": "apples", "extensions": ["a", "b", "c", "d", "e"]}
        result = self.table.execute(call("extendList", arguments), self.context)

        assert not result.success

    def test_unknown_tool(self):
        """Test that unknown tools are recoverable errors."""
        result = self.table.execute(call("search", {}), self.context)

        assert not result.success
        assert result.error == "Unknown tool 'search'"

    def test_malformed_arguments(self):
        """Test that undecodable arguments are recoverable errors."""
        result = self.table.execute(call("annotate", '{"textSpan": "apples",'), self.context)

        assert not result.success
        assert "not valid JSON" in result.error

    def test_get_note_content(self):
        """Test that the note is returned verbatim."""
        result = self.table.execute(call("getNoteContent", {}), self.context)

        assert result.success
        assert result.to_content() == NOTE
        assert self.context.results == []

    def test_span_missing_from_note_is_kept(self):
        """Test that anchoring misses are left to the editor."""
        result = self.table.execute(call("annotate", annotate_args("bananas")), self.context)

        assert result.success
        assert self.context.results[0].text_span == "bananas"
