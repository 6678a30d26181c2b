"""elevator.spans
===============

Value objects shared by the detector, segmenter and reconstructor.

Both :class:`FormattingSpan` and :class:`Segment` are frozen dataclasses:
they are created fresh for every input string and never mutated afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

__all__ = ["SpanKind", "FormattingSpan", "Segment", "plain_span"]


class SpanKind(Enum):
    """The formatting grammars the detector knows about."""

    CODE_BLOCK = "codeblock"
    INLINE_CODE = "inline_code"
    QUOTE = "quote"
    PLAIN = "plain"


@dataclass(frozen=True)
class FormattingSpan:
    """A formatting occurrence located at ``[start, end)`` in the source."""

    kind: SpanKind
    marker: str
    content: str
    original_text: str
    start: int
    end: int
    language: Optional[str] = None

    @property
    def is_code(self) -> bool:
        return self.kind in (SpanKind.CODE_BLOCK, SpanKind.INLINE_CODE)


@dataclass(frozen=True)
class Segment:
    """Unit of reconstruction.

    ``transformed`` is the replacement text produced by elevation; ``None``
    means the segment is written back verbatim.
    """

    formatting: FormattingSpan
    transformed: Optional[str] = None

    @property
    def kind(self) -> SpanKind:
        return self.formatting.kind

    def with_transformed(self, text: Optional[str]) -> "Segment":
        return replace(self, transformed=text)


def plain_span(text: str, start: int) -> FormattingSpan:
    """Return a ``PLAIN`` span covering *text* which begins at *start*."""
    return FormattingSpan(
        kind=SpanKind.PLAIN,
        marker="",
        content=text,
        original_text=text,
        start=start,
        end=start + len(text),
    )
