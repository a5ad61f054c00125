"""Tests for the Rotation Tracker."""

from datetime import datetime, timedelta

import pytest

from canine_kernel.models.schedule import RotationPolicy
from canine_kernel.rotation.tracker import RotationTracker

PLAYED_AT = datetime(2026, 3, 10, 7, 0)


class TestPenaltyDecay:
    def setup_method(self):
        self.tracker = RotationTracker(
            RotationPolicy(habituation_window=timedelta(hours=2)),
            clock=lambda: PLAYED_AT,
        )
        self.tracker.record_play("engage_birds", PLAYED_AT)

    def test_never_played_has_no_penalty(self):
        assert self.tracker.penalty_for("calm_blue_meadow", PLAYED_AT) == 0.0

    def test_just_played_has_full_penalty(self):
        assert self.tracker.penalty_for("engage_birds", PLAYED_AT) == pytest.approx(1.0)

    def test_linear_decay(self):
        halfway = PLAYED_AT + timedelta(hours=1)
        assert self.tracker.penalty_for("engage_birds", halfway) == pytest.approx(0.5)

    def test_monotonically_non_increasing(self):
        penalties = [
            self.tracker.penalty_for("engage_birds", PLAYED_AT + timedelta(minutes=m))
            for m in range(0, 180, 5)
        ]
        assert all(a >= b for a, b in zip(penalties, penalties[1:]))

    def test_zero_at_and_after_window(self):
        assert self.tracker.penalty_for("engage_birds", PLAYED_AT + timedelta(hours=2)) == 0.0
        assert self.tracker.penalty_for("engage_birds", PLAYED_AT + timedelta(hours=5)) == 0.0

    def test_replay_resets_decay(self):
        later = PLAYED_AT + timedelta(hours=1, minutes=30)
        self.tracker.record_play("engage_birds", later)
        assert self.tracker.penalty_for("engage_birds", later) == pytest.approx(1.0)
        assert self.tracker.last_played("engage_birds") == later

    def test_defaults_to_clock(self):
        assert self.tracker.penalty_for("engage_birds") == pytest.approx(1.0)


class TestHistory:
    def test_evicted_items_carry_no_penalty(self):
        tracker = RotationTracker(RotationPolicy(history_size=2), clock=lambda: PLAYED_AT)
        tracker.record_play("a", PLAYED_AT)
        tracker.record_play("b", PLAYED_AT)
        tracker.record_play("c", PLAYED_AT)

        state = tracker.snapshot()
        assert state.recent == ["b", "c"]
        assert state.capacity == 2
        assert tracker.penalty_for("a", PLAYED_AT) == 0.0
        assert tracker.penalty_for("c", PLAYED_AT) == pytest.approx(1.0)
        # Last-played timestamps outlive the FIFO for tie-breaking
        assert tracker.last_played("a") == PLAYED_AT

    def test_variety_level_scales_penalty(self):
        tracker = RotationTracker(RotationPolicy(variety_level=0.5), clock=lambda: PLAYED_AT)
        tracker.record_play("a", PLAYED_AT)
        assert tracker.weighted_penalty("a", PLAYED_AT) == pytest.approx(0.5)

    def test_zero_variety_disables_rotation(self):
        tracker = RotationTracker(RotationPolicy(variety_level=0.0), clock=lambda: PLAYED_AT)
        tracker.record_play("a", PLAYED_AT)
        assert tracker.weighted_penalty("a", PLAYED_AT) == 0.0

    def test_snapshot_is_a_copy(self):
        tracker = RotationTracker(clock=lambda: PLAYED_AT)
        tracker.record_play("a", PLAYED_AT)
        state = tracker.snapshot()
        tracker.record_play("b", PLAYED_AT)
        assert state.recent == ["a"]
