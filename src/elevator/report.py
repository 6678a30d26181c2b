"""elevator.report
================

Data-objects produced by the elevation pipeline.

:class:`ElevationReport` captures metrics and status flags collected while
elevating a single document.
"""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import List, Optional


def _new_run_id() -> str:
    stamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


@dataclass
class ElevationReport:
    """Report detailing the outcome of one elevation run."""

    # ---------------------------------------------------------------------
    # Meta / accounting
    # ---------------------------------------------------------------------
    run_id: str = field(default_factory=_new_run_id)
    elapsed_ms: float = 0.0
    model_used: Optional[str] = None

    # ---------------------------------------------------------------------
    # Size metrics
    # ---------------------------------------------------------------------
    input_char_length: int = 0
    output_char_length: int = 0

    # ---------------------------------------------------------------------
    # Segmentation counters
    # ---------------------------------------------------------------------
    spans_detected: int = 0
    segments_total: int = 0
    segments_eligible: int = 0
    segments_elevated: int = 0
    segments_failed: int = 0
    code_spans_detected: int = 0

    # ---------------------------------------------------------------------
    # Fence checks
    # ---------------------------------------------------------------------
    fenced_blocks_in_input: int = 0
    fenced_blocks_in_output: int = 0
    fence_parity_ok: Optional[bool] = None
    code_preserved_ok: Optional[bool] = None

    # ---------------------------------------------------------------------
    # Outcome / error reporting
    # ---------------------------------------------------------------------
    errors: List[str] = field(default_factory=list)
    final_status_message: str = "Processing not yet complete."


__all__ = ["ElevationReport"]
