"""Formatting-preserving prompt elevation."""

from .config import ElevatorConfig
from .report import ElevationReport
from .core import elevate_text
from .detector import detect
from .segmenter import segment
from .reconstructor import reconstruct
from .spans import FormattingSpan, Segment, SpanKind

__all__ = [
    "ElevatorConfig",
    "ElevationReport",
    "elevate_text",
    "detect",
    "segment",
    "reconstruct",
    "FormattingSpan",
    "Segment",
    "SpanKind",
]
