"""elevator.validators
====================

Checks run on a document before and after elevation.  All helpers are pure
and synchronous so they can be unit-tested without I/O.

* Fenced-code extraction via **markdown-it-py** for an independent count of
  the code blocks before and after elevation.
* A lightweight *fence-parity* helper.
* :func:`code_spans_preserved`, which confirms every detected code span made
  it into the output untouched and in order, whether or not the segmenter
  kept it as a segment of its own.
* :func:`input_length_problem`, the length guard applied before any model call.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from markdown_it import MarkdownIt

from .spans import FormattingSpan

__all__ = [
    "extract_code_blocks",
    "fence_parity_ok",
    "outermost_code_spans",
    "code_spans_preserved",
    "input_length_problem",
]


def extract_code_blocks(markdown_text: str) -> List[Tuple[str, Optional[str]]]:
    """Return ``(content, language)`` for each fenced block in *markdown_text*.

    Uses markdown-it-py's CommonMark parser, so the result is independent of
    :mod:`elevator.detector`.  ``language`` is ``None`` when no tag was given.
    """
    md = MarkdownIt()
    tokens = md.parse(markdown_text)

    code_blocks: List[Tuple[str, Optional[str]]] = []
    for tok in tokens:
        if tok.type == "fence":
            lang_tag: Optional[str] = tok.info.strip() if tok.info else None
            code_blocks.append((tok.content, lang_tag or None))
    return code_blocks


def fence_parity_ok(markdown_text: str) -> bool:
    """Return *True* if the document has a balanced number of triple-backticks."""
    return markdown_text.count("```") % 2 == 0


def outermost_code_spans(spans: Iterable[FormattingSpan]) -> List[FormattingSpan]:
    """Code spans ordered by start, dropping any that overlap an earlier one."""
    code = sorted(
        (s for s in spans if s.is_code),
        key=lambda s: (s.start, -(s.end - s.start)),
    )
    kept: List[FormattingSpan] = []
    for span in code:
        if kept and span.start < kept[-1].end:
            continue
        kept.append(span)
    return kept


def code_spans_preserved(spans: Iterable[FormattingSpan], output: str) -> bool:
    """Return *True* if every detected code span's text occurs in *output*.

    Occurrences must appear in source order and must not overlap.
    """
    cursor = 0
    for span in outermost_code_spans(spans):
        found = output.find(span.original_text, cursor)
        if found < 0:
            return False
        cursor = found + len(span.original_text)
    return True


def input_length_problem(text: str, min_chars: int, max_chars: int) -> Optional[str]:
    """Describe why *text* is too short or too long to elevate, else ``None``.

    Length is measured on the stripped text.  Blank input is not a problem:
    there is simply nothing to elevate.
    """
    length = len(text.strip())
    if length == 0:
        return None
    if length < min_chars:
        return f"Input must be at least {min_chars} characters long (got {length})."
    if length > max_chars:
        return f"Input must not exceed {max_chars} characters (got {length})."
    return None
