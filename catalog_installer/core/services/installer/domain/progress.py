"""
L1 Domain — Progress aggregation.

``build_progress`` is a pure function from "units completed so far"
to a ``ProgressEvent``.  Each step is worth one unit; a download step
may report fractional units while its transfer is running.
``StepProgressTracker`` keeps that fractional state for one step.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from catalog_installer.core.models.progress import Phase, ProgressEvent

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], None]

_ACTION_LABELS = {
    "download": "downloading",
    "extract": "extracting",
    "extract_sfx": "extracting",
    "copy": "copying",
    "run": "running",
    "run_auo_setup": "running",
}

# Fraction of a step unit added per signal when the total size is unknown
UNKNOWN_TOTAL_INCREMENT = 0.05
# Sub-progress never reaches the end of its unit before the step completes
SUB_PROGRESS_CAP = 0.99


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def step_label(step: str | None, phase: Phase) -> str:
    if phase == "init":
        return "preparing"
    if phase == "error":
        return "error"
    if phase == "done":
        return "complete"
    return _ACTION_LABELS.get(step or "", "processing")


def build_progress(
    completed_units: float,
    step: str | None,
    step_index: int | None,
    phase: Phase,
    total_steps: int,
) -> ProgressEvent:
    """Build the event for the current position in a run."""
    if phase == "done":
        ratio = 1.0
    elif phase == "init":
        ratio = 0.0
    elif total_steps > 0:
        ratio = min(max(completed_units / total_steps, 0.0), 1.0)
    else:
        ratio = 0.0

    if not isinstance(step_index, int) or isinstance(step_index, bool) or step_index < 0:
        step_index = None

    return ProgressEvent(
        ratio=ratio,
        percent=_round_half_up(ratio * 100),
        step=step,
        step_index=step_index,
        total_steps=total_steps,
        label=step_label(step, phase),
        phase=phase,
    )


def emit(sink: ProgressSink | None, event: ProgressEvent) -> None:
    """Deliver ``event``; a failing sink is logged and otherwise ignored."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception as e:
        logger.warning("progress callback failed: %s", e)


class StepProgressTracker:
    """Fractional progress inside step ``index`` (one unit wide).

    Values only move forward and stay below ``index + 1`` until the
    step completes.
    """

    def __init__(self, index: int):
        self.index = index
        self._fraction = 0.0

    @property
    def units(self) -> float:
        return self.index + self._fraction

    def update(self, read: int, total: int | None) -> float:
        if total and total > 0:
            candidate = read / total
        else:
            candidate = self._fraction + UNKNOWN_TOTAL_INCREMENT
        candidate = min(candidate, SUB_PROGRESS_CAP)
        if candidate > self._fraction:
            self._fraction = candidate
        return self.units
