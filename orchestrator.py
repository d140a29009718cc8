"""Application orchestrator wiring settings, LLM service, analyzers and checkpoints."""

import logging
from typing import Callable, Dict, List, Optional

from config.settings import Settings
from schemas.annotations import AnnotationResult, BlockAnnotation, NoteBlock

# LLM components
from llm.factory import create_llm_service
from llm.service import LLMService

# Memory components
from memory.sqlite_store import SQLiteMemoryStore
from memory.checkpoint_manager import CheckpointManager
from memory.models import RestoreResult

# Analysis components
from analyzer.loop import Analyzer
from analyzer.oneshot import annotate_blocks
from analyzer.patch import make_patch
from analyzer.tools import ToolTable

logger = logging.getLogger(__name__)


class DocumentSession:
    """Per-document state: analyzer, checkpoints and known annotations."""

    def __init__(self, analyzer: Analyzer, checkpoints: CheckpointManager):
        self.analyzer = analyzer
        self.checkpoints = checkpoints
        self.analyzed_content = ""
        self.annotations: Dict[str, AnnotationResult] = {}

        current = checkpoints.get_checkpoint(checkpoints.current_checkpoint_id or "")
        if current is not None:
            self.analyzed_content = current.content


class AnnotationOrchestrator:
    """Entry point used by the editing layer."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_service: Optional[LLMService] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            llm_service: Pre-built service (default: built from settings)
        """
        self.settings = settings or Settings()
        self.llm_service = llm_service or create_llm_service(
            provider=self.settings.llm_provider,
            api_key=self.settings.get_llm_api_key(),
            model=self.settings.llm_model,
        )

        # Persistence is opt-in
        self.memory_store: Optional[SQLiteMemoryStore] = None
        if self.settings.save_messages:
            self.memory_store = SQLiteMemoryStore(db_path=self.settings.db_path)
            logger.info(f"Persistence enabled: {self.settings.db_path}")

        self.sessions: Dict[str, DocumentSession] = {}

    def session(self, document_id: str) -> DocumentSession:
        """Get or lazily create the session of a document."""
        if document_id not in self.sessions:
            analyzer = Analyzer(
                document_id=document_id,
                llm_service=self.llm_service,
                tool_table=ToolTable(),
                store=self.memory_store,
                max_iterations=self.settings.max_iterations,
                min_patch_lines=self.settings.min_patch_lines,
                temperature=self.settings.temperature,
            )
            checkpoints = CheckpointManager(document_id, store=self.memory_store)
            self.sessions[document_id] = DocumentSession(analyzer, checkpoints)
        return self.sessions[document_id]

    async def analyze_note(
        self,
        document_id: str,
        title: str,
        content: str,
        on_annotation: Optional[Callable[[AnnotationResult], None]] = None,
    ) -> List[AnnotationResult]:
        """
        Analyze the note's changes since its last successful analysis.

        A checkpoint is recorded after every analysis that produced a turn.

        Returns:
            Annotations produced by this analysis
        """
        session = self.session(document_id)
        if content == session.analyzed_content:
            return []

        patch = make_patch(session.analyzed_content, content)
        outcome = await session.analyzer.run_turn(
            patch=patch,
            full_content=content,
            title=title,
            on_annotation=on_annotation,
        )
        results = outcome.annotations

        if outcome.skipped or outcome.aborted:
            # The next call diffs against the same base
            return results

        session.analyzed_content = content
        for annotation in results:
            session.annotations[annotation.annotation_id] = annotation

        session.checkpoints.create(
            message_index=session.analyzer.last_message_index,
            content=content,
            annotation_ids=list(session.annotations),
        )
        return results

    async def restore_checkpoint(self, document_id: str, checkpoint_id: str) -> Optional[RestoreResult]:
        """
        Rewind a document to a checkpoint.

        An in-flight analysis of the document is cancelled and allowed to
        rewind before the conversation is truncated.

        Returns:
            Content and annotation ids to re-render, or None if unknown
        """
        session = self.session(document_id)
        if session.checkpoints.get_checkpoint(checkpoint_id) is None:
            logger.warning(f"Unknown checkpoint {checkpoint_id} for {document_id}")
            return None

        await session.analyzer.settle("checkpoint restore")
        restored = session.checkpoints.restore(checkpoint_id, session.analyzer.truncate_messages)
        if restored is None:
            return None

        session.analyzed_content = restored.content
        keep = set(restored.annotation_ids)
        session.annotations = {
            annotation_id: annotation
            for annotation_id, annotation in session.annotations.items()
            if annotation_id in keep
        }
        return restored

    def cancel(self, document_id: str):
        """Cancel any in-flight analysis of a document."""
        if document_id in self.sessions:
            self.sessions[document_id].analyzer.cancel("cancelled by caller")

    async def annotate_blocks(
        self,
        blocks: List[NoteBlock],
        on_block: Optional[Callable[[str, List[BlockAnnotation]], None]] = None,
    ) -> Dict[str, List[BlockAnnotation]]:
        """Annotate blocks in one-shot streaming mode."""
        return await annotate_blocks(
            self.llm_service,
            blocks,
            on_block=on_block,
            temperature=self.settings.temperature,
        )
