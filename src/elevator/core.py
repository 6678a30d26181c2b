"""elevator.core
==============

High-level orchestration of the elevation pipeline.

The entry-point is :func:`elevate_text`, which consumes raw text, splits it
with the detector and segmenter, sends the prose and quote segments to the
elevation model concurrently, and reassembles the document with every code
span left byte-for-byte intact.  It returns the new text plus an
:class:`~elevator.report.ElevationReport`.

A segment whose elevation fails is written back verbatim; a failure never
aborts the rest of the document.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from . import validators
from .config import ElevatorConfig
from .detector import QUOTE_LINE_RE, detect
from .model_client import ModelClient
from .reconstructor import reconstruct
from .report import ElevationReport
from .segmenter import segment
from .spans import FormattingSpan, Segment, SpanKind

__all__ = ["elevate_text", "Elevate"]

logger = logging.getLogger(__name__)

Elevate = Callable[[str], Awaitable[Optional[str]]]

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _touches_code(seg: Segment, code_spans: Sequence[FormattingSpan]) -> bool:
    span = seg.formatting
    return any(c.start < span.end and span.start < c.end for c in code_spans)


def _is_eligible(
    seg: Segment,
    config: ElevatorConfig,
    code_spans: Sequence[FormattingSpan] = (),
) -> bool:
    if seg.kind is SpanKind.QUOTE:
        if not config.elevate_quotes:
            return False
    elif seg.kind is not SpanKind.PLAIN:
        return False
    # Code never reaches the model, even inside a quote.
    if _touches_code(seg, code_spans):
        return False
    return bool(_elevation_input(seg).strip())


def _elevation_input(seg: Segment) -> str:
    """Text actually sent to the model for *seg*."""
    if seg.kind is SpanKind.QUOTE:
        return seg.formatting.content
    return seg.formatting.original_text.strip()


def _quote_prefixes(original: str, marker: str) -> Tuple[str, str]:
    """Prefix for text lines and for blank lines, taken from the source quote."""
    for line in original.split("\n"):
        match = QUOTE_LINE_RE.match(line)
        if match and match.group(4):
            indent, run, space = match.group(1), match.group(2), match.group(3)
            return indent + run + space, indent + run
    return f"{marker} ", marker


def _wrap_elevated(seg: Segment, elevated: str) -> str:
    """Put the surrounding layout of *seg* back around the model's answer.

    Plain segments keep their leading/trailing whitespace so paragraph breaks
    around code blocks survive; quote segments get the source quote's
    indentation, marker and spacing back on every line.
    """
    original = seg.formatting.original_text
    if seg.kind is SpanKind.QUOTE:
        prefix, blank = _quote_prefixes(original, seg.formatting.marker)
        return "\n".join(
            prefix + line if line else blank
            for line in elevated.strip("\n").split("\n")
        )
    lead = original[: len(original) - len(original.lstrip())]
    trail = original[len(original.rstrip()):]
    return f"{lead}{elevated.strip()}{trail}"


async def _elevate_segments(
    segments: Sequence[Segment],
    indices: Sequence[int],
    elevate: Elevate,
    max_concurrency: int,
) -> List[object]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _one(idx: int):
        async with semaphore:
            return await elevate(_elevation_input(segments[idx]))

    return await asyncio.gather(*(_one(idx) for idx in indices), return_exceptions=True)


def _apply_results(
    segments: Sequence[Segment],
    indices: Sequence[int],
    results: Sequence[object],
    report: ElevationReport,
) -> List[Segment]:
    """Attach results by position; failures and ``None`` keep the original."""
    updated = list(segments)
    for idx, result in zip(indices, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            report.segments_failed += 1
            report.errors.append(f"Segment {idx}: {result}")
            logger.warning("Elevation failed for segment %d, keeping original: %s", idx, result)
            continue
        if result is None:
            continue
        updated[idx] = segments[idx].with_transformed(_wrap_elevated(segments[idx], str(result)))
        report.segments_elevated += 1
    return updated


def _save_report_to_json(report: ElevationReport, report_dir: str) -> None:
    """Serialise *report* to a pretty JSON file under *report_dir*."""
    path = Path(report_dir) / f"{report.run_id}.json"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to save JSON report %s: %s", path, exc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def elevate_text(
    raw_text: str,
    config: ElevatorConfig,
    elevate: Optional[Elevate] = None,
) -> Tuple[str, ElevationReport]:
    """Elevate the prose in *raw_text* while preserving its code spans.

    Parameters
    ----------
    raw_text:
        Input document.
    config:
        Pipeline configuration.
    elevate:
        Optional async ``text -> text`` callable.  When omitted a
        :class:`~elevator.model_client.ModelClient` is opened for the run.
    """
    report = ElevationReport(input_char_length=len(raw_text))
    start_ts = time.perf_counter()

    output = raw_text
    try:
        problem = validators.input_length_problem(
            raw_text, config.min_input_chars, config.max_input_chars
        )
        if problem:
            logger.warning("Input rejected: %s", problem)
            report.errors.append(problem)
            report.final_status_message = "Input rejected."
            return output, report

        # ---------------- Stage 0: Detect & segment ----------------------
        spans = detect(raw_text)
        segments = segment(raw_text, spans)
        report.spans_detected = len(spans)
        report.segments_total = len(segments)
        code_spans = validators.outermost_code_spans(spans)
        report.code_spans_detected = len(code_spans)
        report.fenced_blocks_in_input = len(validators.extract_code_blocks(raw_text))

        eligible = [i for i, seg in enumerate(segments) if _is_eligible(seg, config, code_spans)]
        report.segments_eligible = len(eligible)

        # ---------------- Stage 1: Elevation -----------------------------
        if eligible:
            if elevate is None:
                async with ModelClient(config) as client:
                    report.model_used = config.model_name
                    results = await _elevate_segments(
                        segments, eligible, client.elevate, config.max_concurrency
                    )
            else:
                results = await _elevate_segments(
                    segments, eligible, elevate, config.max_concurrency
                )
            segments = _apply_results(segments, eligible, results, report)

        # ---------------- Stage 2: Reconstruct & verify ------------------
        output = reconstruct(segments)
        report.code_preserved_ok = validators.code_spans_preserved(spans, output)
        if not report.code_preserved_ok:
            report.errors.append("Code spans altered during reconstruction.")
            report.final_status_message = "Code preservation check failed; original text returned."
            output = raw_text
        elif not eligible:
            report.final_status_message = "Nothing to elevate."
        elif report.segments_failed:
            report.final_status_message = (
                f"Partial success. {report.segments_failed} of "
                f"{report.segments_eligible} segments kept verbatim."
            )
        else:
            report.final_status_message = "Success. All eligible segments elevated."

        report.fence_parity_ok = validators.fence_parity_ok(output)
        report.fenced_blocks_in_output = len(validators.extract_code_blocks(output))
    except Exception as exc:  # pragma: no cover - catch-all telemetry
        logger.exception("Critical error while elevating text")
        report.errors.append(f"Critical error: {exc}")
        report.final_status_message = "Critical error during processing."
        output = raw_text
    finally:
        report.output_char_length = len(output)
        report.elapsed_ms = (time.perf_counter() - start_ts) * 1000
        if config.report_dir:
            _save_report_to_json(report, config.report_dir)

    return output, report
