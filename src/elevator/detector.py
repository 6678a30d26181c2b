"""elevator.detector
==================

Locate markdown-style formatting in free-form text.

Three grammars are recognised independently of each other:

* fenced code blocks (triple back-ticks, optional language tag),
* inline code spans (single back-ticks, escape aware),
* block quotes (lines led by one or more ``>``).

Detection is grammar-local: a quote-looking line inside a code block is still
reported as a quote, and it is up to :mod:`elevator.segmenter` to pick one
interpretation.  None of the helpers raise; malformed or unterminated markup
simply yields fewer spans.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .spans import FormattingSpan, SpanKind

__all__ = [
    "detect",
    "detect_code_blocks",
    "detect_inline_code",
    "detect_block_quotes",
]

logger = logging.getLogger(__name__)

FENCE = "```"
INLINE_MARKER = "`"
ESCAPE = "\\"
QUOTE_MARKER = ">"

# Lazy body: the first fence after the opener closes the block, which is also
# why a stray later *opening* fence can end up acting as a closer.
CODE_BLOCK_RE = re.compile(r"```([A-Za-z0-9-]*)\n([\s\S]*?)\n?```")

QUOTE_LINE_RE = re.compile(r"^(\s*)(>+)( ?)(.*)$")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect(text: str) -> List[FormattingSpan]:
    """Return every formatting span in *text*, ordered by ``start``."""
    if not isinstance(text, str) or not text:
        return []

    code_blocks = detect_code_blocks(text)
    spans: List[FormattingSpan] = []
    spans.extend(code_blocks)
    spans.extend(detect_inline_code(text, code_blocks))
    spans.extend(detect_block_quotes(text))

    # Stable: at equal offsets code blocks stay ahead of inline code and quotes.
    spans.sort(key=lambda span: span.start)
    logger.debug(
        "Detected %d spans (%d code blocks) in %d chars",
        len(spans), len(code_blocks), len(text),
    )
    return spans


# ---------------------------------------------------------------------------
# Fenced code blocks
# ---------------------------------------------------------------------------

def detect_code_blocks(text: str) -> List[FormattingSpan]:
    """Return the closed fenced code blocks in *text*.

    An opening fence with no closing fence after it is not reported.
    """
    if not isinstance(text, str) or not text:
        return []

    blocks: List[FormattingSpan] = []
    for match in CODE_BLOCK_RE.finditer(text):
        language = match.group(1) or None
        blocks.append(
            FormattingSpan(
                kind=SpanKind.CODE_BLOCK,
                marker=FENCE,
                content=match.group(2),
                original_text=match.group(0),
                start=match.start(),
                end=match.end(),
                language=language,
            )
        )
    return blocks


# ---------------------------------------------------------------------------
# Inline code
# ---------------------------------------------------------------------------

class _ScanState(Enum):
    SCANNING = "scanning"
    IN_CANDIDATE_SPAN = "in_candidate_span"


def _is_escaped(text: str, index: int) -> bool:
    """True when ``text[index]`` follows an odd-length run of backslashes."""
    run = 0
    cursor = index - 1
    while cursor >= 0 and text[cursor] == ESCAPE:
        run += 1
        cursor -= 1
    return run % 2 == 1


def _opens_inline(text: str, index: int) -> bool:
    """Whether the back-tick at *index* may open an inline code span."""
    if _is_escaped(text, index):
        return False
    # Adjacent unescaped back-ticks belong to a (potential) fence.
    if index > 0 and text[index - 1] == INLINE_MARKER and not _is_escaped(text, index - 1):
        return False
    if index + 1 < len(text) and text[index + 1] == INLINE_MARKER:
        return False
    return True


def _inside_any(start: int, end: int, blocks: Iterable[FormattingSpan]) -> bool:
    return any(block.start <= start and end <= block.end for block in blocks)


def detect_inline_code(
    text: str,
    code_blocks: Optional[List[FormattingSpan]] = None,
) -> List[FormattingSpan]:
    """Return the single back-tick code spans in *text*.

    The scan is an explicit two-state walk rather than a regex because the
    escape, fence-adjacency and single-line rules depend on each other.

    Parameters
    ----------
    text:
        Source text.
    code_blocks:
        Already detected code blocks; computed from *text* when omitted.
        Inline spans lying entirely inside one of them are discarded.
    """
    if not isinstance(text, str) or not text:
        return []
    if code_blocks is None:
        code_blocks = detect_code_blocks(text)

    spans: List[FormattingSpan] = []
    length = len(text)
    state = _ScanState.SCANNING
    opener = 0
    pos = 0

    while True:
        if pos >= length:
            if state is _ScanState.IN_CANDIDATE_SPAN:
                # Unterminated at end of text.
                state = _ScanState.SCANNING
                pos = opener + 1
                continue
            break

        char = text[pos]

        if state is _ScanState.SCANNING:
            if char == INLINE_MARKER and _opens_inline(text, pos):
                state = _ScanState.IN_CANDIDATE_SPAN
                opener = pos
            pos += 1
            continue

        # -- IN_CANDIDATE_SPAN ------------------------------------------
        if char == "\n":
            state = _ScanState.SCANNING
            pos = opener + 1
            continue
        if char != INLINE_MARKER:
            pos += 1
            continue

        # Any back-tick closes the candidate, escaped or not.
        end = pos + 1
        state = _ScanState.SCANNING
        if end < length and text[end] == INLINE_MARKER:
            pos = end
            continue

        if not _inside_any(opener, end, code_blocks):
            spans.append(
                FormattingSpan(
                    kind=SpanKind.INLINE_CODE,
                    marker=INLINE_MARKER,
                    content=text[opener + 1:pos],
                    original_text=text[opener:end],
                    start=opener,
                    end=end,
                )
            )
        pos = end

    return spans


# ---------------------------------------------------------------------------
# Block quotes
# ---------------------------------------------------------------------------

@dataclass
class _OpenQuote:
    start: int
    marker: str
    lines: List[str] = field(default_factory=list)
    contents: List[str] = field(default_factory=list)

    def close(self) -> FormattingSpan:
        original = "\n".join(self.lines)
        return FormattingSpan(
            kind=SpanKind.QUOTE,
            marker=self.marker,
            content="\n".join(self.contents),
            original_text=original,
            start=self.start,
            end=self.start + len(original),
        )


def detect_block_quotes(text: str) -> List[FormattingSpan]:
    """Return block quotes, merging consecutive lines of equal nesting level."""
    if not isinstance(text, str) or not text:
        return []

    quotes: List[FormattingSpan] = []
    current: Optional[_OpenQuote] = None
    offset = 0

    for line in text.split("\n"):
        match = QUOTE_LINE_RE.match(line)
        if match is None:
            if current is not None:
                quotes.append(current.close())
                current = None
        else:
            marker = match.group(2)
            if current is None or current.marker != marker:
                if current is not None:
                    quotes.append(current.close())
                current = _OpenQuote(start=offset, marker=marker)
            current.lines.append(line)
            current.contents.append(match.group(4))
        offset += len(line) + 1

    if current is not None:
        quotes.append(current.close())
    return quotes
