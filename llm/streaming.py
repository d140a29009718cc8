"""Incremental extraction of per-block results from a streamed JSON object.

In one-shot mode the model answers with a single object keyed by block id,
each value an array. While tokens arrive, the growing buffer is scanned for a
block whose value looks finished so it can be shown before the stream ends.

The scan is regex based: a block whose rendered value happens to contain
another block's key pattern can be cut at the wrong place. Anything missed
here is recovered from the full buffer once the stream finishes.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Set

from pydantic import BaseModel

from .json_utils import repair_json_text

logger = logging.getLogger(__name__)


class CompletedBlock(BaseModel):
    """A block whose value parsed successfully."""
    block_id: str
    value: Any


def key_pattern(block_id: str) -> "re.Pattern[str]":
    """Pattern for ``"<id>":``, allowing whitespace inside the quotes."""
    return re.compile(r'"\s*' + re.escape(block_id) + r'"\s*:')


def try_extract_complete_block(
    buffer: str,
    block_ids: List[str],
    completed: Set[str],
) -> Optional[CompletedBlock]:
    """
    Find the first not-yet-completed block whose value parses.

    Args:
        buffer: Response text received so far
        block_ids: Expected block ids, in declared order
        completed: Ids already extracted (not modified here)

    Returns:
        The completed block, or None if no block is complete yet
    """
    for index, block_id in enumerate(block_ids):
        if block_id in completed:
            continue

        start_match = key_pattern(block_id).search(buffer)
        if not start_match:
            continue

        start = start_match.end()
        end = len(buffer)
        if index + 1 < len(block_ids):
            next_match = key_pattern(block_ids[index + 1]).search(buffer, start)
            if next_match:
                end = next_match.start()

        candidate = buffer[start:end].strip()
        if not candidate or not (candidate.endswith("]") or candidate.endswith("],")):
            continue

        if candidate.endswith(","):
            candidate = candidate[:-1]

        entry = "{" + json.dumps(block_id) + ":" + candidate + "}"
        try:
            parsed = json.loads(repair_json_text(entry))
        except (json.JSONDecodeError, ValueError):
            # Not parseable yet, might be incomplete
            continue
        if not isinstance(parsed, dict) or block_id not in parsed:
            continue

        return CompletedBlock(block_id=block_id, value=parsed[block_id])

    return None


class BlockExtractor:
    """Tracks which blocks have been surfaced for one streamed response."""

    def __init__(self, block_ids: Iterable[str]):
        self.block_ids = list(block_ids)
        self.completed: Set[str] = set()

    def feed(self, buffer: str) -> Optional[CompletedBlock]:
        """Check the current buffer; at most one block completes per call."""
        block = try_extract_complete_block(buffer, self.block_ids, self.completed)
        if block is not None:
            self.completed.add(block.block_id)
            logger.debug(f"Complete block: {block.block_id}")
        return block

    def mark_complete(self, block_id: str) -> None:
        self.completed.add(block_id)

    @property
    def pending(self) -> List[str]:
        return [block_id for block_id in self.block_ids if block_id not in self.completed]
