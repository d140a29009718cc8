"""Tests for the annotation orchestrator."""

import asyncio

import pytest

from config.settings import Settings
from orchestrator import AnnotationOrchestrator
from schemas.annotations import NoteBlock
from fakes import (
    ScriptedProvider,
    annotate_args,
    text_response,
    tool_calls_response,
    wait_for_requests,
)

FIRST = "Cities built for cars.\nNot for people."
SECOND = FIRST + "\nWalking is thinking."


class TestAnnotationOrchestrator:
    """Test analysis sessions and checkpoints."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = ScriptedProvider()
        self.orchestrator = AnnotationOrchestrator(
            settings=Settings(llm_provider="together", save_messages=False),
            llm_service=self.provider.service(),
        )

    def analyze(self, content, document_id="doc-1"):
        return asyncio.run(self.orchestrator.analyze_note(document_id, "Streets", content))

    def test_successful_analysis_creates_checkpoint(self):
        """Test that a finished turn is checkpointed at its last message."""
        self.provider.responses = [
            tool_calls_response(("annotate", annotate_args("Cities built for cars"))),
            text_response("Done."),
        ]

        results = self.analyze(FIRST)

        session = self.orchestrator.session("doc-1")
        checkpoints = session.checkpoints.get_checkpoints()
        assert len(checkpoints) == 1
        assert checkpoints[0].message_index == 3
        assert checkpoints[0].content == FIRST
        assert checkpoints[0].annotation_ids == [results[0].annotation_id]
        assert session.analyzed_content == FIRST

    def test_second_analysis_sends_diff(self):
        """Test that later analyses only carry the change."""
        self.provider.responses = [text_response("ok"), text_response("ok")]

        self.analyze(FIRST)
        self.analyze(SECOND)

        last_user = self.provider.requests[1]["messages"][-1]
        assert last_user.role == "user"
        assert "+Walking is thinking." in last_user.content
        assert "Title: Streets" not in last_user.content

    def test_unchanged_content_makes_no_call(self):
        """Test that re-analysing the same text is a no-op."""
        self.provider.responses = [text_response("ok")]

        self.analyze(FIRST)
        assert self.analyze(FIRST) == []
        assert len(self.provider.requests) == 1

    def test_restore_checkpoint_rewinds_everything(self):
        """Test restoring the first of two checkpoints."""
        self.provider.responses = [
            tool_calls_response(("annotate", annotate_args("Cities built for cars"))),
            text_response("Done."),
            tool_calls_response(("annotate", annotate_args("Walking is thinking"))),
            text_response("Done again."),
        ]
        first_results = self.analyze(FIRST)
        self.analyze(SECOND)
        session = self.orchestrator.session("doc-1")
        first_checkpoint = session.checkpoints.get_checkpoints()[0]
        assert len(session.analyzer.messages) == 8

        restored = asyncio.run(self.orchestrator.restore_checkpoint("doc-1", first_checkpoint.checkpoint_id))

        assert restored.content == FIRST
        assert restored.annotation_ids == [first_results[0].annotation_id]
        assert len(session.analyzer.messages) == 4
        assert session.analyzed_content == FIRST
        assert list(session.annotations) == [first_results[0].annotation_id]
        assert session.checkpoints.get_checkpoints() == [first_checkpoint]

    def test_restore_unknown_checkpoint(self):
        """Test that unknown ids are reported as None."""
        assert asyncio.run(self.orchestrator.restore_checkpoint("doc-1", "checkpoint-missing")) is None

    def test_restore_during_analysis_cancels_it_first(self):
        """Test that a running analysis cannot undo or outlive a restore."""
        third = SECOND + "\nStreets are rooms."
        self.provider.responses = [text_response("ok"), text_response("ok again")]
        self.analyze(FIRST)
        self.analyze(SECOND)
        session = self.orchestrator.session("doc-1")
        first_checkpoint = session.checkpoints.get_checkpoints()[0]

        async def scenario():
            self.provider.hold = asyncio.Event()
            self.provider.responses = [text_response("late reply")]
            task = asyncio.ensure_future(self.orchestrator.analyze_note("doc-1", "Streets", third))
            await wait_for_requests(self.provider, 3)
            restored = await self.orchestrator.restore_checkpoint("doc-1", first_checkpoint.checkpoint_id)
            return restored, await task

        restored, late_results = asyncio.run(scenario())

        assert restored.content == FIRST
        assert late_results == []
        assert [m.role for m in session.analyzer.messages] == ["user", "assistant"]
        assert session.checkpoints.get_checkpoints() == [first_checkpoint]
        assert session.analyzed_content == FIRST
        assert self.provider.responses == [text_response("late reply")]

    def test_truncate_refused_while_analysis_runs(self):
        """Test that the analyzer rejects truncation mid-call."""

        async def scenario():
            hold = asyncio.Event()
            self.provider.hold = hold
            self.provider.responses = [text_response("ok")]
            task = asyncio.ensure_future(self.orchestrator.analyze_note("doc-1", "Streets", FIRST))
            await wait_for_requests(self.provider, 1)
            analyzer = self.orchestrator.session("doc-1").analyzer
            with pytest.raises(RuntimeError, match="analysis is running"):
                analyzer.truncate_messages(0)
            hold.set()
            return await task

        assert asyncio.run(scenario()) == []

    def test_cancelled_analysis_leaves_no_checkpoint(self):
        """Test that an aborted turn keeps the old base and checkpoints."""

        async def scenario():
            self.provider.hold = asyncio.Event()
            self.provider.responses = [text_response("never delivered")]
            task = asyncio.ensure_future(self.orchestrator.analyze_note("doc-1", "Streets", FIRST))
            await wait_for_requests(self.provider, 1)
            self.orchestrator.cancel("doc-1")
            return await task

        assert asyncio.run(scenario()) == []

        session = self.orchestrator.session("doc-1")
        assert session.checkpoints.get_checkpoints() == []
        assert session.analyzed_content == ""
        assert session.analyzer.messages == ()

    def test_documents_have_separate_sessions(self):
        """Test per-document isolation."""
        self.provider.responses = [text_response("ok"), text_response("ok")]

        self.analyze(FIRST, document_id="doc-1")
        self.analyze(FIRST, document_id="doc-2")

        second_request = self.provider.requests[1]["messages"]
        assert [m.role for m in second_request] == ["system", "user"]

    def test_annotate_blocks_uses_shared_service(self):
        """Test the one-shot entry point."""
        self.provider.chunks = ['{"p0": [{"source": "Jane Jacobs"}]', "}"]

        results = asyncio.run(self.orchestrator.annotate_blocks([NoteBlock(id="p0", text=FIRST)]))

        assert results["p0"][0].source == "Jane Jacobs"


class TestPersistentOrchestrator:
    """Test sessions backed by SQLite."""

    def test_session_resumes_after_restart(self, tmp_path):
        """Test that conversation and checkpoints survive a new orchestrator."""
        settings = Settings(llm_provider="together", save_messages=True, db_path=str(tmp_path / "notes.db"))
        provider = ScriptedProvider([text_response("ok"), text_response("ok again")])

        first = AnnotationOrchestrator(settings=settings, llm_service=provider.service())
        asyncio.run(first.analyze_note("doc-1", "Streets", FIRST))

        second = AnnotationOrchestrator(settings=settings, llm_service=provider.service())
        session = second.session("doc-1")
        assert session.analyzed_content == FIRST
        assert len(session.analyzer.messages) == 2

        asyncio.run(second.analyze_note("doc-1", "Streets", SECOND))
        assert "+Walking is thinking." in provider.requests[1]["messages"][-1].content
        assert len(session.checkpoints.get_checkpoints()) == 2
