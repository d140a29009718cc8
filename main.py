#!/usr/bin/env python3
"""Margin annotator CLI."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from config.settings import Settings
from orchestrator import AnnotationOrchestrator
from analyzer.blocks import collapse_blocks


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _paragraphs(content: str):
    """One editor paragraph per line of a plain text file."""
    return [
        {"id": f"p{index}", "type": "paragraph", "text": line}
        for index, line in enumerate(content.splitlines())
    ]


async def _run(args, orchestrator: AnnotationOrchestrator):
    content = _read(args.note)

    if args.one_shot:
        blocks = collapse_blocks(_paragraphs(content))

        def on_block(block_id, annotations):
            print(f"[{block_id}] {len(annotations)} annotations", file=sys.stderr)

        results = await orchestrator.annotate_blocks(blocks, on_block=on_block)
        return {
            block_id: [a.model_dump(exclude_none=True) for a in annotations]
            for block_id, annotations in results.items()
        }

    if args.previous:
        # Analyze the previous version first so the note is sent as a diff
        await orchestrator.analyze_note(args.document_id, args.title, _read(args.previous))

    def on_annotation(annotation):
        print(f"+ {annotation.type.value}: {annotation.text_span!r}", file=sys.stderr)

    annotations = await orchestrator.analyze_note(
        args.document_id,
        args.title,
        content,
        on_annotation=on_annotation,
    )
    return [a.model_dump(by_alias=True, exclude_none=True, mode="json") for a in annotations]


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Margin Annotator - research sources and list extensions for your notes"
    )
    parser.add_argument(
        "note",
        type=str,
        help="Path to the note (plain text)"
    )
    parser.add_argument(
        "--title",
        "-t",
        type=str,
        default="",
        help="Note title"
    )
    parser.add_argument(
        "--document-id",
        type=str,
        default="cli",
        help="Document ID used for the conversation and checkpoints (default: cli)"
    )
    parser.add_argument(
        "--previous",
        type=str,
        help="Path to an earlier version of the note; the current one is analyzed as a diff"
    )
    parser.add_argument(
        "--one-shot",
        action="store_true",
        help="Annotate paragraph blocks with a single streamed JSON response"
    )
    parser.add_argument(
        "--provider",
        "-p",
        type=str,
        choices=["openai", "anthropic", "together", "kimi", "openrouter"],
        help="LLM provider (default: LLM_PROVIDER or together)"
    )
    parser.add_argument(
        "--model",
        type=str,
        help="Override the provider's default model"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    settings = Settings(
        llm_provider=args.provider,
        llm_model=args.model,
        verbose=args.verbose,
    )

    try:
        orchestrator = AnnotationOrchestrator(settings=settings)
        output = asyncio.run(_run(args, orchestrator))
        print(json.dumps(output, indent=2))
    except Exception as e:
        print(f"Error annotating note: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
