"""Per-document checkpoints for rewinding a conversation."""

import time
import uuid
import logging
from typing import Callable, List, Optional

from .models import Checkpoint, RestoreResult
from .sqlite_store import SQLiteMemoryStore

logger = logging.getLogger(__name__)


class CheckpointManager:
    """
    Append-only checkpoint list for one document.

    Without a store (persistence flag off) checkpoints live only in memory;
    callers see the same behaviour minus durability.
    """

    def __init__(self, document_id: str, store: Optional[SQLiteMemoryStore] = None):
        """
        Initialize the manager and load any persisted checkpoints.

        Args:
            document_id: Document the checkpoints belong to
            store: Optional persistent store
        """
        self.document_id = document_id
        self.store = store
        self.checkpoints: List[Checkpoint] = self._load_checkpoints()
        self.current_checkpoint_id: Optional[str] = None

        # Most recent checkpoint is current
        if self.checkpoints:
            self.current_checkpoint_id = self.checkpoints[-1].checkpoint_id

    def _load_checkpoints(self) -> List[Checkpoint]:
        if self.store is None:
            return []
        return self.store.load_checkpoints(self.document_id)

    def _save_checkpoints(self):
        if self.store is None:
            return
        try:
            self.store.save_checkpoints(self.document_id, self.checkpoints)
        except Exception as e:
            logger.error(f"Error saving checkpoints for {self.document_id}: {e}")

    def _next_timestamp(self) -> int:
        now = time.time_ns() // 1_000_000
        if self.checkpoints:
            now = max(now, self.checkpoints[-1].timestamp + 1)
        return now

    def create(self, message_index: int, content: str, annotation_ids: List[str]) -> Checkpoint:
        """
        Append a checkpoint and make it current.

        Args:
            message_index: Index of the last conversation message it covers
            content: Note content at this point
            annotation_ids: Annotations visible at this point

        Returns:
            The new checkpoint
        """
        checkpoint = Checkpoint(
            checkpoint_id=f"checkpoint-{uuid.uuid4().hex[:12]}",
            message_index=message_index,
            timestamp=self._next_timestamp(),
            content=content,
            annotation_ids=list(annotation_ids),
        )

        self.checkpoints.append(checkpoint)
        self.current_checkpoint_id = checkpoint.checkpoint_id
        self._save_checkpoints()

        logger.info(
            f"Checkpoint {checkpoint.checkpoint_id} created for {self.document_id} "
            f"at message {message_index}"
        )
        return checkpoint

    def get_checkpoints(self) -> List[Checkpoint]:
        """Get all checkpoints, oldest first."""
        return list(self.checkpoints)

    def get_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        return next((c for c in self.checkpoints if c.checkpoint_id == checkpoint_id), None)

    def restore(
        self,
        checkpoint_id: str,
        truncate_callback: Callable[[int], None],
    ) -> Optional[RestoreResult]:
        """
        Rewind to a checkpoint.

        Args:
            checkpoint_id: Checkpoint to restore
            truncate_callback: Called with the checkpoint's message index so
                the conversation owner can drop later messages

        Returns:
            Content and annotation ids to re-render, or None if unknown
        """
        checkpoint = self.get_checkpoint(checkpoint_id)
        if checkpoint is None:
            logger.warning(f"Unknown checkpoint {checkpoint_id} for {self.document_id}")
            return None

        truncate_callback(checkpoint.message_index)

        self.checkpoints = [c for c in self.checkpoints if c.timestamp <= checkpoint.timestamp]
        self.current_checkpoint_id = checkpoint.checkpoint_id
        self._save_checkpoints()

        logger.info(f"Restored {self.document_id} to {checkpoint_id}")
        return RestoreResult(
            content=checkpoint.content,
            annotation_ids=list(checkpoint.annotation_ids),
        )
