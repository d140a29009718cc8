"""One-shot block annotation: a single JSON response keyed by block id."""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from llm.cancellation import CancellationToken
from llm.json_utils import parse_json_response
from llm.models import Message
from llm.service import LLMService
from llm.streaming import BlockExtractor
from schemas.annotations import BlockAnnotation, NoteBlock
from .blocks import format_blocks
from .prompts import BLOCK_SYSTEM_PROMPT, BLOCKS_PREAMBLE, single_block_message

logger = logging.getLogger(__name__)

JSON_OBJECT_FORMAT = {"type": "json_object"}


def to_block_annotations(value: Any) -> List[BlockAnnotation]:
    """Coerce a parsed block value into annotations, skipping malformed items."""
    if not isinstance(value, list):
        return []
    annotations = []
    for item in value:
        try:
            annotations.append(BlockAnnotation.model_validate(item))
        except ValidationError:
            logger.warning(f"Skipping malformed block annotation: {item!r}")
    return annotations


async def annotate_blocks(
    llm_service: LLMService,
    blocks: List[NoteBlock],
    on_block: Optional[Callable[[str, List[BlockAnnotation]], None]] = None,
    cancellation: Optional[CancellationToken] = None,
    temperature: float = 0.6,
) -> Dict[str, List[BlockAnnotation]]:
    """
    Annotate every block with one streamed response.

    Blocks are surfaced through ``on_block`` as soon as their value is
    complete in the stream; blocks never completed mid-stream are taken from
    a parse of the whole response.

    Returns:
        Annotations by block id
    """
    messages = [
        Message(role="system", content=BLOCK_SYSTEM_PROMPT),
        Message(role="user", content=f"{BLOCKS_PREAMBLE}\n\n{format_blocks(blocks)}"),
    ]

    extractor = BlockExtractor(block.id for block in blocks)
    results: Dict[str, List[BlockAnnotation]] = {}
    buffer = ""

    def surface(block_id: str, value: Any):
        annotations = to_block_annotations(value)
        results[block_id] = annotations
        if on_block is not None:
            on_block(block_id, annotations)

    async for delta in llm_service.stream_llm(
        messages,
        temperature=temperature,
        response_format=JSON_OBJECT_FORMAT,
        cancellation=cancellation,
    ):
        buffer += delta
        completed = extractor.feed(buffer)
        if completed is not None:
            surface(completed.block_id, completed.value)

    # One block completes per feed; drain any that finished together
    completed = extractor.feed(buffer)
    while completed is not None:
        surface(completed.block_id, completed.value)
        completed = extractor.feed(buffer)

    pending = extractor.pending
    if not pending:
        return results

    logger.info(f"Recovering {len(pending)} blocks from the full response")
    parsed = parse_json_response(buffer)
    if not isinstance(parsed, dict):
        logger.warning(f"Full response is a {type(parsed).__name__}, not an object keyed by block id")
        return results

    for block_id in pending:
        extractor.mark_complete(block_id)
        surface(block_id, parsed.get(block_id, []))

    return results


async def annotate_block(
    llm_service: LLMService,
    all_blocks: List[NoteBlock],
    block: NoteBlock,
    existing: Optional[List[BlockAnnotation]] = None,
    cancellation: Optional[CancellationToken] = None,
    temperature: float = 0.6,
) -> List[BlockAnnotation]:
    """
    Annotate a single block with the whole note as context.

    Sources already given in ``existing`` are named so the model picks others.
    """
    existing_sources = ", ".join(a.source for a in (existing or []) if a.source)
    prompt = single_block_message(
        format_blocks(all_blocks),
        block.id,
        block.text.replace("\\n", "\n"),
        existing_sources,
    )

    response = await llm_service.call_llm(
        [
            Message(role="system", content=BLOCK_SYSTEM_PROMPT),
            Message(role="user", content=prompt),
        ],
        temperature=temperature,
        response_format=JSON_OBJECT_FORMAT,
        cancellation=cancellation,
    )

    parsed = parse_json_response(response.content or "")
    if not isinstance(parsed, dict):
        return []
    return to_block_annotations(parsed.get("annotations", []))
