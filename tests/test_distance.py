"""Test GPS filtering and stride-projected distance."""

from datetime import datetime, timezone

import pytest

from runmetrics.config import DistanceConfig
from runmetrics.data.models import LocationFix
from runmetrics.data.records import StrideModel
from runmetrics.distance import (
    DistanceTracker,
    SignalQuality,
    evaluate_signal_quality,
    haversine_distance,
)


def stride_model(alpha=0.005, beta=0.2):
    return StrideModel(
        alpha=alpha,
        beta=beta,
        r_squared=0.9,
        sample_count=5,
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


class TestHaversine:
    """Test great-circle distance."""

    def test_same_point(self):
        """Test zero distance between identical coordinates."""
        assert haversine_distance(37.0, -122.0, 37.0, -122.0) == 0.0

    def test_meridian_arc(self):
        """Test distance along a meridian equals R times the latitude change."""
        distance = haversine_distance(0.0, 10.0, 1.0, 10.0)
        assert distance == pytest.approx(6371000.0 * 0.017453292519943295)

    def test_symmetric(self):
        """Test distance does not depend on direction."""
        a = haversine_distance(51.5007, -0.1246, 40.6892, -74.0445)
        b = haversine_distance(40.6892, -74.0445, 51.5007, -0.1246)
        assert a == pytest.approx(b)
        assert a == pytest.approx(5574840, rel=1e-3)


class TestGpsPath:
    """Test accuracy and speed filtering of fixes."""

    def test_accepted_fixes_sum(self, tracker, make_fix):
        """Test accepted fixes sum to the known total."""
        for i in range(11):
            tracker.add_location(make_fix(float(i), meters_north=10.0 * i))

        assert tracker.total_distance == pytest.approx(100.0)
        assert tracker.current_speed == pytest.approx(10.0)
        assert len(tracker.locations) == 11

    def test_first_fix_adds_nothing(self, tracker, make_fix):
        """Test a lone fix only sets the reference."""
        outcome = tracker.add_location(make_fix(0.0))
        assert outcome.accepted
        assert outcome.distance_added == 0.0
        assert tracker.total_distance == 0.0

    @pytest.mark.parametrize("accuracy", [0.0, -1.0, 20.0, 35.0])
    def test_inaccurate_fix_dropped(self, tracker, make_fix, accuracy):
        """Test fixes outside (0, 20) m accuracy are discarded."""
        outcome = tracker.add_location(make_fix(0.0, accuracy=accuracy))
        assert not outcome.accepted
        assert outcome.rejected_reason == "accuracy"
        assert tracker.locations == []
        assert tracker.last_fix is None
        assert tracker.rejected_fixes == 1

    def test_inaccurate_fix_is_not_reference(self, tracker, make_fix):
        """Test a dropped fix does not become the previous-fix reference."""
        tracker.add_location(make_fix(0.0, meters_north=0.0))
        tracker.add_location(make_fix(1.0, meters_north=500.0, accuracy=25.0))
        tracker.add_location(make_fix(2.0, meters_north=10.0))

        assert tracker.total_distance == pytest.approx(10.0)
        assert tracker.current_speed == pytest.approx(5.0)

    def test_jump_dropped_but_becomes_reference(self, tracker, make_fix):
        """Test a fix implying >= 15 m/s adds nothing but moves the reference."""
        tracker.add_location(make_fix(0.0, meters_north=0.0))
        outcome = tracker.add_location(make_fix(1.0, meters_north=200.0))
        assert outcome.accepted
        assert outcome.rejected_reason == "speed"
        assert outcome.distance_added == 0.0

        tracker.add_location(make_fix(2.0, meters_north=205.0))

        assert tracker.total_distance == pytest.approx(5.0)
        assert tracker.rejected_jumps == 1
        assert len(tracker.locations) == 3

    def test_speed_limit(self, tracker, make_fix):
        """Test segments either side of 15 m/s."""
        tracker.add_location(make_fix(0.0))
        assert tracker.add_location(make_fix(2.0, meters_north=29.0)).rejected_reason is None
        assert tracker.add_location(make_fix(4.0, meters_north=60.0)).rejected_reason == "speed"
        assert tracker.total_distance == pytest.approx(29.0)

    def test_non_positive_time_step(self, tracker, make_fix):
        """Test a fix with no elapsed time adds nothing but moves the reference."""
        tracker.add_location(make_fix(5.0, meters_north=0.0))
        tracker.add_location(make_fix(5.0, meters_north=3.0))
        tracker.add_location(make_fix(6.0, meters_north=6.0))

        assert tracker.total_distance == pytest.approx(3.0)

    def test_custom_thresholds(self, make_fix):
        """Test configured accuracy and speed limits are honoured."""
        tracker = DistanceTracker(DistanceConfig(max_horizontal_accuracy=50.0,
                                                 max_realistic_speed=100.0))
        tracker.add_location(make_fix(0.0, accuracy=30.0))
        tracker.add_location(make_fix(1.0, meters_north=50.0, accuracy=30.0))
        assert tracker.total_distance == pytest.approx(50.0)

    def test_reset_gps_keeps_stride_path(self, tracker, make_fix):
        """Test reset_gps leaves the stride projection alone."""
        tracker.set_stride_model(stride_model())
        tracker.update_steps(10, 160.0)
        tracker.add_location(make_fix(0.0))
        tracker.add_location(make_fix(1.0, meters_north=4.0))

        tracker.reset_gps()

        assert tracker.total_distance == 0.0
        assert tracker.locations == []
        assert tracker.last_fix is None
        assert tracker.stride_distance == pytest.approx(10.0)


class TestStrideProjection:
    """Test stride-projected distance."""

    def test_inert_without_model(self, tracker):
        """Test no distance accumulates while no model is set."""
        assert tracker.update_steps(50, 160.0) == 0.0
        assert tracker.stride_distance == 0.0
        assert not tracker.stride_projection_active

    def test_increment_times_predicted_stride(self, tracker):
        """Test each increment adds steps * (alpha * cadence + beta)."""
        tracker.set_stride_model(stride_model(alpha=0.005, beta=0.2))

        assert tracker.update_steps(10, 160.0) == pytest.approx(10.0)
        assert tracker.update_steps(30, 120.0) == pytest.approx(16.0)
        assert tracker.stride_distance == pytest.approx(26.0)

    def test_non_positive_increment_ignored(self, tracker):
        """Test repeated or lower totals add nothing."""
        tracker.set_stride_model(stride_model())
        tracker.update_steps(20, 160.0)

        assert tracker.update_steps(20, 160.0) == 0.0
        assert tracker.update_steps(10, 160.0) == 0.0
        # Reference stayed at 20
        assert tracker.update_steps(22, 160.0) == pytest.approx(2.0)

    def test_reset_distance(self, tracker, make_fix):
        """Test reset_distance zeroes both paths and references."""
        tracker.set_stride_model(stride_model())
        tracker.update_steps(20, 160.0)
        tracker.add_location(make_fix(0.0))
        tracker.add_location(make_fix(1.0, meters_north=4.0))

        tracker.reset_distance()

        assert tracker.total_distance == 0.0
        assert tracker.stride_distance == 0.0
        assert tracker.locations == []
        # Step reference restarts at zero
        assert tracker.update_steps(10, 160.0) == pytest.approx(10.0)
        # First fix after reset only sets the reference
        tracker.add_location(make_fix(5.0, meters_north=100.0))
        assert tracker.total_distance == 0.0


class TestSignalQuality:
    """Test fix accuracy grading."""

    @pytest.mark.parametrize("accuracy,quality", [
        (-1.0, SignalQuality.NONE),
        (3.0, SignalQuality.EXCELLENT),
        (10.0, SignalQuality.GOOD),
        (19.9, SignalQuality.GOOD),
        (20.0, SignalQuality.FAIR),
        (50.0, SignalQuality.WEAK),
    ])
    def test_grades(self, accuracy, quality):
        """Test accuracy bands map to quality grades."""
        fix = LocationFix(timestamp=0.0, latitude=0.0, longitude=0.0,
                          horizontal_accuracy=accuracy)
        assert evaluate_signal_quality(fix) == quality

    def test_no_fix(self):
        """Test a missing fix grades as none."""
        assert evaluate_signal_quality(None) == SignalQuality.NONE

    def test_status_reports_quality(self, tracker, make_fix):
        """Test get_status includes the latest fix quality."""
        tracker.add_location(make_fix(0.0, accuracy=5.0))
        status = tracker.get_status()
        assert status["signal_quality"] == "excellent"
        assert status["points"] == 1
