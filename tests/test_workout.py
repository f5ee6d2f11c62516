"""Unit tests for Workout values and RepCountingTracker."""

from datetime import datetime, timedelta, timezone

import pytest

from pushin_gate.workout import (
    RepCountingTracker,
    Workout,
    WorkoutMode,
    is_time_based,
    normalize_workout_type,
)

T0 = datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def make_workout(workout_type: str = "push-ups", reps: int = 10, earned: int = 600) -> Workout:
    return Workout(id="w-1", type=workout_type, target_reps=reps, earned_time_seconds=earned)


class TestWorkout:
    def test_valid(self):
        workout = make_workout()
        assert workout.mode == WorkoutMode.NORMAL
        assert workout.to_dict()["earned_time_seconds"] == 600

    @pytest.mark.parametrize("kwargs", [
        {"type": ""},
        {"target_reps": 0},
        {"earned_time_seconds": 0},
    ])
    def test_invalid(self, kwargs):
        fields = {"id": "w", "type": "push-ups", "target_reps": 10, "earned_time_seconds": 600}
        fields.update(kwargs)
        with pytest.raises(ValueError):
            Workout(**fields)

    def test_metadata_only_in_dict_when_set(self):
        assert "metadata" not in make_workout().to_dict()
        workout = Workout("w", "squats", 12, 600, metadata={"source": "camera"})
        assert workout.to_dict()["metadata"] == {"source": "camera"}


class TestHelpers:
    def test_normalize(self):
        assert normalize_workout_type(" Jumping Jacks ") == "jumping-jacks"
        assert normalize_workout_type("push_ups") == "push-ups"

    def test_time_based(self):
        assert is_time_based("Plank")
        assert not is_time_based("burpees")

    def test_mode_labels(self):
        assert WorkoutMode.TUFF.display_name == "Tuff"
        assert WorkoutMode("cozy").description == "Gentle start"


class TestRepCountingTracker:
    def test_no_workout(self):
        tracker = RepCountingTracker()
        tracker.record_reps(5, at(0))
        assert tracker.completed_reps == 0
        assert tracker.get_progress(at(0)) == 0.0
        assert not tracker.is_completed(at(0))

    def test_rep_progress(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout(reps=10), at(0))
        tracker.record_reps(4, at(1))
        tracker.record_rep(at(2))
        assert tracker.get_progress(at(2)) == pytest.approx(0.5)
        assert not tracker.is_completed(at(2))
        tracker.record_reps(5, at(3))
        assert tracker.is_completed(at(3))

    def test_progress_is_clamped(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout(reps=10), at(0))
        tracker.record_reps(25, at(1))
        assert tracker.get_progress(at(1)) == 1.0

    def test_non_positive_counts_ignored(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout(reps=10), at(0))
        tracker.record_reps(-3, at(1))
        assert tracker.completed_reps == 0

    def test_plank_completes_on_elapsed_time(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout("plank", reps=30), at(0))
        assert not tracker.is_completed(at(29))
        assert tracker.is_completed(at(30))
        assert tracker.effective_reps(at(12)) == 12

    def test_plank_recorded_seconds_count(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout("plank", reps=30), at(0))
        tracker.record_reps(30, at(5))
        assert tracker.is_completed(at(5))

    def test_start_resets_count(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout(reps=10), at(0))
        tracker.record_reps(8, at(1))
        tracker.record_workout_start(make_workout(reps=10), at(2))
        assert tracker.completed_reps == 0
        assert tracker.started_at == at(2)

    def test_clear(self):
        tracker = RepCountingTracker()
        tracker.record_workout_start(make_workout(), at(0))
        tracker.clear_workout()
        assert tracker.get_current_workout() is None
        assert tracker.started_at is None
