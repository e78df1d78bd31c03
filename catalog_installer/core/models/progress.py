"""
Progress model — the single event type emitted during a run.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Phase = Literal["init", "running", "step-complete", "done", "error"]


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    ratio: float
    percent: int
    step: str | None = None
    step_index: int | None = None
    total_steps: int = 0
    label: str
    phase: Phase
