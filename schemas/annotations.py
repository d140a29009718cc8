"""Annotation schemas exchanged with the editing layer."""

import uuid
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


def new_annotation_id() -> str:
    return f"annotation-{uuid.uuid4().hex[:12]}"


class AnnotationType(str, Enum):
    """Kind of marginal annotation."""
    REFERENCE = "reference"
    LIST = "list"


class Record(BaseModel):
    """One research source attached to a text span."""
    description: str
    title: str
    author: Optional[str] = None
    domain: str
    search_query: str


class AnnotationResult(BaseModel):
    """
    Annotation anchored to an exact substring of the note.

    ``text_span`` (serialized as ``textSpan``) must match the note verbatim;
    the editing layer anchors it by exact, case-sensitive substring search.
    """
    model_config = ConfigDict(populate_by_name=True)

    annotation_id: str = Field(default_factory=new_annotation_id, alias="annotationId")
    type: AnnotationType
    text_span: str = Field(alias="textSpan", min_length=1)
    records: Optional[List[Record]] = None
    extensions: Optional[List[str]] = None


class BlockAnnotation(BaseModel):
    """Annotation returned per block in one-shot mode (all fields optional)."""
    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    relevance: Optional[str] = None
    source: Optional[str] = None
    domain: Optional[str] = None


class NoteBlock(BaseModel):
    """A logical block of the note, as supplied by the editing layer."""
    id: str
    text: str
    collapsed_ids: List[str] = Field(default_factory=list)
