"""elevator.segmenter
===================

Turn detected spans into a gap-free sequence of :class:`~elevator.spans.Segment`.

The detector reports overlapping spans of different kinds on purpose, so a
single linear sweep picks one interpretation: spans are visited by ascending
``start``, longest first, then by kind priority (code block > inline code >
quote > plain).  A span that begins before the next free offset is dropped
from the segmentation.  Text between accepted spans becomes a synthetic
``PLAIN`` segment.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .spans import FormattingSpan, Segment, SpanKind, plain_span

__all__ = ["segment", "plain_segment"]

logger = logging.getLogger(__name__)

_KIND_PRIORITY = {
    SpanKind.CODE_BLOCK: 0,
    SpanKind.INLINE_CODE: 1,
    SpanKind.QUOTE: 2,
    SpanKind.PLAIN: 3,
}


def plain_segment(text: str, start: int) -> Segment:
    return Segment(plain_span(text, start))


def _sweep_key(span: FormattingSpan):
    return (span.start, -(span.end - span.start), _KIND_PRIORITY[span.kind])


def _fits(text: str, span: FormattingSpan) -> bool:
    """Span offsets are in range, non-empty and agree with *text*."""
    if not 0 <= span.start < span.end <= len(text):
        return False
    return text[span.start:span.end] == span.original_text


def segment(
    text: str,
    spans: Optional[Iterable[FormattingSpan]],
) -> List[Segment]:
    """Split *text* into ordered segments covering every character once."""
    if not isinstance(text, str) or not text:
        return []

    candidates = sorted((s for s in spans or () if _fits(text, s)), key=_sweep_key)

    segments: List[Segment] = []
    cursor = 0
    dropped = 0
    for span in candidates:
        if span.start < cursor:
            dropped += 1
            continue
        if span.start > cursor:
            segments.append(plain_segment(text[cursor:span.start], cursor))
        segments.append(Segment(span))
        cursor = span.end

    if cursor < len(text):
        segments.append(plain_segment(text[cursor:], cursor))

    if dropped:
        logger.debug("Dropped %d overlapping spans during segmentation", dropped)
    return segments
