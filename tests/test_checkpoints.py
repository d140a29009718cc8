"""Tests for checkpoint management."""

from unittest.mock import Mock

from memory.checkpoint_manager import CheckpointManager
from memory.models import Conversation, RestoreResult
from memory.sqlite_store import SQLiteMemoryStore
from llm.models import Message


class TestCheckpointManager:
    """Test in-memory checkpoint behaviour."""

    def setup_method(self):
        """Set up test fixtures."""
        self.manager = CheckpointManager("doc-1")
        self.first = self.manager.create(1, "one", ["annotation-a"])
        self.second = self.manager.create(3, "one two", ["annotation-a", "annotation-b"])
        self.third = self.manager.create(5, "one two three", ["annotation-a", "annotation-b", "annotation-c"])

    def test_create_makes_checkpoint_current(self):
        """Test that the newest checkpoint is current."""
        assert self.manager.current_checkpoint_id == self.third.checkpoint_id
        assert [c.message_index for c in self.manager.get_checkpoints()] == [1, 3, 5]

    def test_timestamps_strictly_increase(self):
        """Test ordering even when created within the same millisecond."""
        timestamps = [c.timestamp for c in self.manager.get_checkpoints()]
        assert timestamps == sorted(set(timestamps))

    def test_restore_truncates_and_drops_later_checkpoints(self):
        """Test restoring to the middle checkpoint."""
        truncate = Mock()

        result = self.manager.restore(self.second.checkpoint_id, truncate)

        truncate.assert_called_once_with(3)
        assert result == RestoreResult(content="one two", annotation_ids=["annotation-a", "annotation-b"])
        assert [c.checkpoint_id for c in self.manager.get_checkpoints()] == [
            self.first.checkpoint_id,
            self.second.checkpoint_id,
        ]
        assert self.manager.current_checkpoint_id == self.second.checkpoint_id

    def test_restore_unknown_checkpoint(self):
        """Test that an unknown id changes nothing."""
        truncate = Mock()

        assert self.manager.restore("checkpoint-missing", truncate) is None
        truncate.assert_not_called()
        assert len(self.manager.get_checkpoints()) == 3

    def test_restore_truncates_conversation_to_index_plus_one(self):
        """Test the truncation length seen by a conversation owner."""
        conversation = Conversation(
            document_id="doc-1",
            messages=tuple(Message(role="user", content=str(i)) for i in range(8)),
        )
        holder = {"conversation": conversation}

        def truncate(message_index):
            holder["conversation"] = holder["conversation"].truncate(message_index + 1)

        self.manager.restore(self.second.checkpoint_id, truncate)

        assert len(holder["conversation"].messages) == 4
        assert conversation.messages[3] == holder["conversation"].messages[-1]


class TestCheckpointPersistence:
    """Test checkpoints stored in SQLite."""

    def test_checkpoints_reloaded(self, tmp_path):
        """Test that a new manager resumes from stored checkpoints."""
        store = SQLiteMemoryStore(db_path=str(tmp_path / "notes.db"))
        manager = CheckpointManager("doc-1", store=store)
        manager.create(1, "one", [])
        latest = manager.create(3, "one two", ["annotation-a"])

        reloaded = CheckpointManager("doc-1", store=store)

        assert [c.checkpoint_id for c in reloaded.get_checkpoints()] == [
            c.checkpoint_id for c in manager.get_checkpoints()
        ]
        assert reloaded.current_checkpoint_id == latest.checkpoint_id
        assert reloaded.get_checkpoint(latest.checkpoint_id).annotation_ids == ["annotation-a"]

    def test_restore_is_persisted(self, tmp_path):
        """Test that dropped checkpoints stay dropped."""
        store = SQLiteMemoryStore(db_path=str(tmp_path / "notes.db"))
        manager = CheckpointManager("doc-1", store=store)
        first = manager.create(1, "one", [])
        manager.create(3, "one two", [])

        manager.restore(first.checkpoint_id, lambda index: None)

        assert [c.checkpoint_id for c in store.load_checkpoints("doc-1")] == [first.checkpoint_id]

    def test_documents_are_isolated(self, tmp_path):
        """Test that checkpoints are keyed by document."""
        store = SQLiteMemoryStore(db_path=str(tmp_path / "notes.db"))
        CheckpointManager("doc-1", store=store).create(1, "one", [])

        assert CheckpointManager("doc-2", store=store).get_checkpoints() == []


class TestSQLiteMemoryStore:
    """Test the conversation store."""

    def setup_method(self):
        """Set up test fixtures."""
        self.messages = [
            Message(role="user", content="hello"),
            Message(role="assistant", content="hi"),
        ]

    def test_save_and_load_messages(self, tmp_path):
        """Test that messages survive a round trip through the store."""
        store = SQLiteMemoryStore(db_path=str(tmp_path / "notes.db"))
        store.save_messages("doc-1", self.messages)

        assert store.load_messages("doc-1") == self.messages
        assert store.load_messages("doc-2") == []
        assert store.list_documents() == ["doc-1"]

    def test_delete_conversation(self, tmp_path):
        """Test that deleting removes messages and checkpoints."""
        store = SQLiteMemoryStore(db_path=str(tmp_path / "notes.db"))
        store.save_messages("doc-1", self.messages)
        CheckpointManager("doc-1", store=store).create(1, "hello", [])

        store.delete_conversation("doc-1")

        assert store.load_messages("doc-1") == []
        assert store.load_checkpoints("doc-1") == []
