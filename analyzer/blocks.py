"""Logical blocks built from editor paragraphs."""

import re
from typing import Any, Dict, Iterable, List

from schemas.annotations import NoteBlock

_HTML_TAG = re.compile(r"<[^>]*>")


def collapse_blocks(paragraphs: Iterable[Dict[str, Any]]) -> List[NoteBlock]:
    """
    Merge consecutive non-empty paragraphs into logical blocks.

    Empty paragraphs separate blocks. A merged block takes the id of its
    first paragraph and remembers every paragraph id it absorbed.

    Args:
        paragraphs: Editor blocks with ``id``, ``type`` and ``text``

    Returns:
        Collapsed blocks in document order
    """
    collapsed: List[NoteBlock] = []
    current_lines: List[str] = []
    current_ids: List[str] = []

    def flush():
        text = "\n".join(current_lines).strip()
        if text:
            collapsed.append(NoteBlock(id=current_ids[0], text=text, collapsed_ids=list(current_ids)))
        current_lines.clear()
        current_ids.clear()

    for block in paragraphs:
        if block.get("type", "paragraph") != "paragraph":
            continue
        text = _HTML_TAG.sub("", block.get("text") or "")
        if text.strip() == "":
            flush()
            continue
        current_lines.append(text)
        current_ids.append(block["id"])

    flush()
    return collapsed


def format_blocks(blocks: Iterable[NoteBlock]) -> str:
    """Render blocks as ``block_id: <id>`` sections for a prompt."""
    sections = []
    for block in blocks:
        # Editors sometimes hand over escaped newlines
        text = block.text.replace("\\n", "\n")
        sections.append(f"block_id: {block.id}\n{text}")
    return "\n\n".join(sections)
