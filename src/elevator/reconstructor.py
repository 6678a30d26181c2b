"""Reassemble text from (optionally elevated) segments."""
from __future__ import annotations

from typing import Optional, Sequence

from .spans import Segment

__all__ = ["reconstruct_segment", "reconstruct_text", "reconstruct"]


def reconstruct_segment(segment: Segment) -> str:
    """Return the replacement for *segment* if it has one, else its original text.

    An empty replacement is honoured; only ``None`` means "keep verbatim".
    """
    if segment.transformed is not None:
        return segment.transformed
    return segment.formatting.original_text


def reconstruct_text(segments: Optional[Sequence[Segment]]) -> str:
    if not segments:
        return ""
    return "".join(reconstruct_segment(seg) for seg in segments)


reconstruct = reconstruct_text
