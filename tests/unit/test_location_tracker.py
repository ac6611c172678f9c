"""
Unit tests for LocationTracker and MockLocationSource.
"""

import pytest

from app.core.exceptions import InvalidLocationError
from app.services.geo import distance_meters
from app.services.location_tracker import LocationTracker, MockLocationSource
from tests.factories import ATHENS, make_location, make_movement_quest


class TestLocationTracker:
    """Bounded history and sample validation."""

    def test_history_is_capped_fifo(self, tracker):
        """150 samples leave the newest 100, oldest first."""
        for i in range(150):
            tracker.record(make_location(0, i * 0.0001, i))

        history = tracker.history
        assert len(history) == 100
        assert [s.timestamp_millis for s in history] == list(range(50, 150))
        assert tracker.current.timestamp_millis == 149

    def test_custom_limit(self):
        tracker = LocationTracker(history_limit=3)
        for i in range(5):
            tracker.record(make_location(0, 0, i))
        assert [s.timestamp_millis for s in tracker.history] == [2, 3, 4]

    def test_accepts_camel_case_mapping(self, tracker):
        location = tracker.record({"lat": 10.5, "lng": -3.25, "timestampMillis": 42})
        assert location.lat == 10.5
        assert location.timestamp_millis == 42

    @pytest.mark.parametrize("sample", [
        {"lat": 91, "lng": 0, "timestampMillis": 0},
        {"lat": 0, "lng": -181, "timestampMillis": 0},
        {"lat": 0, "timestampMillis": 0},
        {"lat": float("nan"), "lng": 0, "timestampMillis": 0},
        "not-a-location",
    ])
    def test_rejects_invalid_sample_without_recording(self, tracker, sample):
        tracker.record(make_location(1, 1, 0))

        with pytest.raises(InvalidLocationError):
            tracker.record(sample)

        assert len(tracker) == 1
        assert tracker.current.lat == 1

    def test_last_two_needs_two_samples(self, tracker):
        assert tracker.last_two() is None
        tracker.record(make_location(0, 0, 0))
        assert tracker.last_two() is None
        tracker.record(make_location(0, 0.001, 1))
        previous, current = tracker.last_two()
        assert previous.lng == 0
        assert current.lng == 0.001

    def test_load_keeps_newest(self):
        tracker = LocationTracker(history_limit=2)
        tracker.load([make_location(0, 0, i) for i in range(4)])
        assert [s.timestamp_millis for s in tracker.history] == [2, 3]


class TestMockLocationSource:
    """Simulated GPS."""

    def test_step_moves_at_preset_speed(self):
        source = MockLocationSource(ATHENS.lat, ATHENS.lng, clock=lambda: 0.0)
        start = source.sample()

        moved = source.step(north=1, east=0, dt=10)

        assert distance_meters(start, moved) == pytest.approx(14.0, rel=0.01)
        assert moved.lat > start.lat
        assert moved.heading_degrees == pytest.approx(0.0)
        assert moved.timestamp_millis == 10_000
        assert moved.speed_meters_per_second == 1.4

    def test_diagonal_step_uses_unit_direction(self):
        source = MockLocationSource(ATHENS.lat, ATHENS.lng, speed_preset="cycling", clock=lambda: 0.0)
        start = source.sample()
        moved = source.step(north=3, east=3, dt=2)
        assert distance_meters(start, moved) == pytest.approx(11.0, rel=0.01)
        assert moved.heading_degrees == pytest.approx(45.0)

    def test_zero_direction_only_advances_time(self):
        source = MockLocationSource(1.0, 2.0, clock=lambda: 1.0)
        moved = source.step(0, 0, dt=5)
        assert (moved.lat, moved.lng) == (1.0, 2.0)
        assert moved.timestamp_millis == 6_000

    def test_teleport(self):
        source = MockLocationSource(0, 0, clock=lambda: 0.0)
        location = source.teleport(48.8566, 2.3522)
        assert (location.lat, location.lng) == (48.8566, 2.3522)

    def test_unknown_speed_preset(self):
        with pytest.raises(ValueError):
            MockLocationSource(0, 0, speed_preset="teleporting")

    def test_switching_source_keeps_engine_state(self, make_engine):
        """Samples from the mock source feed the same engine as real GPS."""
        engine = make_engine()
        engine.update_location(make_location(ATHENS.lat, ATHENS.lng, 0))
        engine.add_quest(make_movement_quest(target=1000))

        engine.toggle_gps_mode()
        source = MockLocationSource(ATHENS.lat, ATHENS.lng, speed_preset="running", clock=lambda: 0.0)
        engine.update_location(source.sample())
        engine.update_location(source.step(1, 0, dt=10))

        assert engine.get_progress("walk-200").current_distance_meters == pytest.approx(30.0, rel=0.01)
