"""Conversation and checkpoint persistence."""

from .models import Conversation, Checkpoint, RestoreResult
from .sqlite_store import SQLiteMemoryStore
from .checkpoint_manager import CheckpointManager

__all__ = [
    "Conversation",
    "Checkpoint",
    "RestoreResult",
    "SQLiteMemoryStore",
    "CheckpointManager",
]
