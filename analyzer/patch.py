"""Diffs between analysed and current note content."""

import difflib
from typing import List

CONTEXT_LINES = 2


def make_patch(previous: str, current: str) -> str:
    """
    Unified diff of ``previous`` -> ``current`` with blank lines dropped.

    When nothing has been analysed yet the whole current text is the patch.
    """
    if previous == "":
        return current

    diff_lines = difflib.unified_diff(
        previous.splitlines(),
        current.splitlines(),
        fromfile="Original",
        tofile="Current",
        n=CONTEXT_LINES,
        lineterm="",
    )
    kept: List[str] = []
    for line in diff_lines:
        stripped = line.strip()
        if stripped == "" or "\\ No newline at end of file" in stripped:
            continue
        kept.append(line)
    return "\n".join(kept)


def count_content_lines(patch: str) -> int:
    """
    Count lines carrying real content.

    For a unified diff only added or removed lines with text inside a hunk
    count; everything before the first ``@@`` is file header. For plain text
    (a first analysis) every non-blank line counts.
    """
    lines = patch.splitlines()
    if not any(line.startswith("@@") for line in lines):
        return sum(1 for line in lines if line.strip())

    count = 0
    in_hunk = False
    for line in lines:
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk or line.startswith("\\"):
            continue
        if line[:1] in ("+", "-") and line[1:].strip():
            count += 1
    return count
