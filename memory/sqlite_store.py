"""SQLite-based keyed store for conversations and checkpoints."""

import sqlite3
import json
import logging
from pathlib import Path
from datetime import datetime
from typing import List

from llm.models import Message
from .models import Checkpoint

logger = logging.getLogger(__name__)


class SQLiteMemoryStore:
    """
    Two keyed stores in one SQLite file.

    ``conversations`` maps document id to its ordered message list and
    ``checkpoints`` maps document id to its ordered checkpoint list. Each value
    is stored whole as JSON and replaced whole on save.
    """

    def __init__(self, db_path: str = "data/annotations.db"):
        """
        Initialize SQLite memory store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS conversations (
                document_id TEXT PRIMARY KEY,
                messages TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checkpoints (
                document_id TEXT PRIMARY KEY,
                checkpoints TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.commit()
        conn.close()
        logger.info(f"Database initialized at {self.db_path}")

    def load_messages(self, document_id: str) -> List[Message]:
        """
        Load the conversation of a document.

        Args:
            document_id: Document ID

        Returns:
            Ordered messages, empty if none stored
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT messages FROM conversations WHERE document_id = ?",
            (document_id,)
        )
        row = cursor.fetchone()
        conn.close()

        if not row:
            return []

        try:
            return [Message.model_validate(item) for item in json.loads(row["messages"])]
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Error loading conversation for {document_id}: {e}")
            return []

    def save_messages(self, document_id: str, messages: List[Message]):
        """Replace the stored conversation of a document."""
        payload = json.dumps([m.model_dump(exclude_none=True) for m in messages])

        conn = self._get_connection()
        conn.execute(
            """
            INSERT OR REPLACE INTO conversations (document_id, messages, updated_at)
            VALUES (?, ?, ?)
            """,
            (document_id, payload, datetime.now())
        )
        conn.commit()
        conn.close()

    def delete_conversation(self, document_id: str):
        """Remove a document's conversation and checkpoints."""
        conn = self._get_connection()
        conn.execute("DELETE FROM conversations WHERE document_id = ?", (document_id,))
        conn.execute("DELETE FROM checkpoints WHERE document_id = ?", (document_id,))
        conn.commit()
        conn.close()

    def load_checkpoints(self, document_id: str) -> List[Checkpoint]:
        """Load the checkpoint list of a document."""
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT checkpoints FROM checkpoints WHERE document_id = ?",
            (document_id,)
        )
        row = cursor.fetchone()
        conn.close()

        if not row:
            return []

        try:
            return [Checkpoint.model_validate(item) for item in json.loads(row["checkpoints"])]
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Error loading checkpoints for {document_id}: {e}")
            return []

    def save_checkpoints(self, document_id: str, checkpoints: List[Checkpoint]):
        """Replace the stored checkpoint list of a document."""
        payload = json.dumps([c.model_dump() for c in checkpoints])

        conn = self._get_connection()
        conn.execute(
            """
            INSERT OR REPLACE INTO checkpoints (document_id, checkpoints, updated_at)
            VALUES (?, ?, ?)
            """,
            (document_id, payload, datetime.now())
        )
        conn.commit()
        conn.close()

    def list_documents(self, limit: int = 50) -> List[str]:
        """
        List document ids with a stored conversation, most recent first.

        Args:
            limit: Maximum number of ids

        Returns:
            Document ids
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT document_id FROM conversations
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            (limit,)
        )
        rows = cursor.fetchall()
        conn.close()

        return [row["document_id"] for row in rows]
