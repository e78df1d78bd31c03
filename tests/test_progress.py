"""
Tests for progress aggregation — build_progress, labels, sub-progress.
"""

import logging

import pytest

from catalog_installer.core.services.installer.domain.progress import (
    SUB_PROGRESS_CAP,
    StepProgressTracker,
    build_progress,
    emit,
    step_label,
)


class TestBuildProgress:
    def test_init_is_zero(self):
        event = build_progress(3, None, None, "init", 4)
        assert event.ratio == 0.0
        assert event.percent == 0
        assert event.label == "preparing"

    def test_done_is_one(self):
        event = build_progress(0, None, None, "done", 4)
        assert event.ratio == 1.0
        assert event.percent == 100
        assert event.label == "complete"

    def test_done_with_no_steps(self):
        assert build_progress(0, None, None, "done", 0).ratio == 1.0

    def test_running_with_no_steps(self):
        assert build_progress(0, "copy", 0, "running", 0).ratio == 0.0

    def test_ratio_is_units_over_total(self):
        event = build_progress(1, "copy", 0, "step-complete", 4)
        assert event.ratio == 0.25
        assert event.percent == 25
        assert event.total_steps == 4

    def test_ratio_clamped(self):
        assert build_progress(9, "copy", 0, "running", 4).ratio == 1.0
        assert build_progress(-1, "copy", 0, "running", 4).ratio == 0.0

    def test_percent_rounds_half_up(self):
        # 1/8 = 12.5% → 13
        assert build_progress(1, "copy", 0, "running", 8).percent == 13

    def test_error_label(self):
        assert build_progress(1, "copy", 1, "error", 3).label == "error"

    @pytest.mark.parametrize("index", [-1, True, "1", 1.5, None])
    def test_invalid_step_index_becomes_none(self, index):
        assert build_progress(0, "copy", index, "running", 2).step_index is None

    def test_valid_step_index_kept(self):
        assert build_progress(0, "copy", 1, "running", 2).step_index == 1


class TestStepLabel:
    @pytest.mark.parametrize("action,label", [
        ("download", "downloading"),
        ("extract", "extracting"),
        ("extract_sfx", "extracting"),
        ("copy", "copying"),
        ("run", "running"),
        ("run_auo_setup", "running"),
        ("delete", "processing"),
        (None, "processing"),
    ])
    def test_action_labels(self, action, label):
        assert step_label(action, "running") == label


class TestStepProgressTracker:
    def test_known_total_is_linear(self):
        tracker = StepProgressTracker(2)
        assert tracker.update(50, 100) == pytest.approx(2.5)

    def test_never_reaches_next_unit(self):
        tracker = StepProgressTracker(0)
        tracker.update(100, 100)
        assert tracker.units == pytest.approx(SUB_PROGRESS_CAP)

    def test_unknown_total_increments(self):
        tracker = StepProgressTracker(1)
        tracker.update(10, None)
        tracker.update(20, None)
        assert tracker.units == pytest.approx(1.10)

    def test_unknown_total_capped(self):
        tracker = StepProgressTracker(0)
        for _ in range(100):
            tracker.update(1, None)
        assert tracker.units == pytest.approx(SUB_PROGRESS_CAP)

    def test_never_decreases(self):
        tracker = StepProgressTracker(0)
        tracker.update(80, 100)
        tracker.update(10, 100)
        assert tracker.units == pytest.approx(0.8)


class TestEmit:
    def test_none_sink(self):
        emit(None, build_progress(0, None, None, "init", 1))

    def test_failing_sink_is_swallowed(self, caplog):
        caplog.set_level(logging.WARNING)

        def _boom(event):
            raise RuntimeError("ui gone")

        emit(_boom, build_progress(0, None, None, "init", 1))
        assert "progress callback failed" in caplog.text
