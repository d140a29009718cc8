"""Pydantic schemas for note annotations."""

from .annotations import (
    AnnotationType,
    AnnotationResult,
    BlockAnnotation,
    NoteBlock,
    Record,
)

__all__ = [
    "AnnotationType",
    "AnnotationResult",
    "BlockAnnotation",
    "NoteBlock",
    "Record",
]
