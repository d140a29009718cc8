"""Memory data models."""

from typing import List, Tuple
from pydantic import BaseModel, ConfigDict, Field

from llm.models import Message


class Conversation(BaseModel):
    """
    Message history of one document, as an immutable versioned value.

    Mutations return a new Conversation with ``version`` bumped, so a caller
    holding an older value can restore it wholesale.
    """
    model_config = ConfigDict(frozen=True)

    document_id: str
    messages: Tuple[Message, ...] = ()
    version: int = 0

    def append(self, *messages: Message) -> "Conversation":
        return Conversation(
            document_id=self.document_id,
            messages=self.messages + tuple(messages),
            version=self.version + 1,
        )

    def truncate(self, length: int) -> "Conversation":
        """Keep the first ``length`` messages."""
        return Conversation(
            document_id=self.document_id,
            messages=self.messages[:max(0, length)],
            version=self.version + 1,
        )

    @property
    def is_empty(self) -> bool:
        return not self.messages


class Checkpoint(BaseModel):
    """Saved position in a document's conversation."""
    checkpoint_id: str
    message_index: int
    timestamp: int  # milliseconds since epoch, strictly increasing per document
    content: str
    annotation_ids: List[str] = Field(default_factory=list)


class RestoreResult(BaseModel):
    """What the caller needs to re-render after a restore."""
    content: str
    annotation_ids: List[str] = Field(default_factory=list)
