"""Test peak detection, batch cadence and the live cadence monitor."""

import pytest

from runmetrics.cadence import (
    CadenceEstimator,
    DetectionState,
    LiveCadenceMonitor,
    PeakDetector,
    detect_peaks,
    steps_from_peaks,
)
from runmetrics.config import CadenceConfig

# gyro_z, accel_y per sample: swing, stance impulse, secondary ringing, recovery
CYCLE = [
    (1.5, 0.8),
    (2.5, 0.6),
    (0.5, 0.1),
    (-3.0, -0.4),
    (-0.8, -0.2),
    (-2.6, -0.3),
    (-1.0, 0.0),
    (0.4, -0.1),
]


def build_cycles(make_sample, count, period=0.4, padding=0):
    """Samples for count cycles of CYCLE spread evenly over period seconds each."""
    step = period / len(CYCLE)
    samples = []
    t = 0.0
    for _ in range(count):
        for gyro_z, accel_y in CYCLE:
            samples.append(make_sample(t, gyro_z=gyro_z, accel_y=accel_y))
            t += step
    for _ in range(padding):
        samples.append(make_sample(t))
        t += step
    return samples


class TestPeakDetector:
    """Test the three-state stance detector."""

    def test_initial_state(self):
        """Test detector starts waiting for a swing phase."""
        detector = PeakDetector()
        assert detector.state == DetectionState.WAITING_POSITIVE
        assert detector.peak_count == 0

    def test_swing_requires_both_axes(self, make_sample):
        """Test positive gyro alone does not open a swing phase."""
        detector = PeakDetector()
        detector.update(make_sample(0.0, gyro_z=2.0, accel_y=-0.5))
        assert detector.state == DetectionState.WAITING_POSITIVE

        detector.update(make_sample(0.05, gyro_z=2.0, accel_y=0.5))
        assert detector.state == DetectionState.WAITING_FIRST_NEGATIVE

    def test_negative_without_swing_is_ignored(self, make_sample):
        """Test a stance impulse before any swing phase is not a peak."""
        detector = PeakDetector()
        assert not detector.update(make_sample(0.0, gyro_z=-5.0))
        assert detector.peak_count == 0

    def test_threshold_is_inclusive(self, make_sample):
        """Test gyro Z exactly at the threshold counts as a peak."""
        detector = PeakDetector()
        detector.update(make_sample(0.0, gyro_z=1.0, accel_y=1.0))
        assert detector.update(make_sample(0.05, gyro_z=-2.0))
        assert detector.state == DetectionState.IGNORING_UNTIL_POSITIVE

    def test_custom_threshold(self, make_sample):
        """Test an injected stance threshold replaces the default."""
        detector = PeakDetector(stance_threshold=-4.0)
        detector.update(make_sample(0.0, gyro_z=1.0, accel_y=1.0))
        assert not detector.update(make_sample(0.05, gyro_z=-3.0))
        assert detector.update(make_sample(0.1, gyro_z=-4.5))

    def test_ringing_is_debounced(self, make_sample):
        """Test secondary dips before the next positive crossing are ignored."""
        samples = build_cycles(make_sample, 1)
        assert detect_peaks(samples) == [3]

    def test_reset(self, make_sample):
        """Test reset clears state and count."""
        detector = PeakDetector()
        for sample in build_cycles(make_sample, 3):
            detector.update(sample)
        assert detector.peak_count == 3

        detector.reset()
        assert detector.peak_count == 0
        assert detector.state == DetectionState.WAITING_POSITIVE


class TestDetectPeaks:
    """Test peak detection over sequences."""

    @pytest.mark.parametrize("count", [1, 2, 5, 12])
    def test_one_peak_per_cycle(self, make_sample, count):
        """Test K well-separated cycles yield exactly K peaks."""
        samples = build_cycles(make_sample, count)
        peaks = detect_peaks(samples)
        assert len(peaks) == count
        assert peaks == [i * len(CYCLE) + 3 for i in range(count)]

    def test_empty_sequence(self):
        """Test no samples yields no peaks."""
        assert detect_peaks([]) == []

    def test_mock_gait_signal(self, gait_samples):
        """Test the synthetic 150 SPM signal peaks every 0.8 s from 0.5 s."""
        samples = gait_samples(cadence=150.0, duration=10.0)
        peaks = detect_peaks(samples)
        times = [samples[i].timestamp for i in peaks]
        assert len(times) == 12
        assert times[0] == pytest.approx(0.5)
        assert times[-1] == pytest.approx(9.3)


class TestStepsFromPeaks:
    """Test the single-ankle step formula."""

    @pytest.mark.parametrize("peaks,steps", [(0, 0), (1, 0), (2, 2), (11, 20), (12, 22)])
    def test_steps(self, peaks, steps):
        """Test (N - 1) * 2 with incomplete intervals discarded."""
        assert steps_from_peaks(peaks) == steps


class TestCadenceEstimator:
    """Test batch cadence computation."""

    def test_exact_spm(self, make_sample):
        """Test SPM = ((N - 1) * 2 / T) * 60 for evenly spaced peaks."""
        # 11 cycles of 0.8 s: 10 intervals, 20 steps over 8.0 s
        samples = build_cycles(make_sample, 11, period=0.8)
        result = CadenceEstimator().analyze(samples)

        assert result.peak_count == 11
        assert result.total_steps == 20
        assert result.running_time == pytest.approx(8.0)
        assert result.spm == pytest.approx(150.0)

    def test_gait_signal_cadence(self, gait_samples):
        """Test the estimator recovers the synthetic cadence."""
        samples = gait_samples(cadence=150.0, duration=10.0)
        assert CadenceEstimator().calculate_cadence(samples) == pytest.approx(150.0)
        assert CadenceEstimator().count_steps(samples) == 22

    def test_too_few_samples(self, make_sample):
        """Test fewer than 20 samples yields 0 SPM."""
        samples = build_cycles(make_sample, 2, period=0.8)
        assert len(samples) < 20
        assert CadenceEstimator().calculate_cadence(samples) == 0.0

    def test_single_peak(self, make_sample):
        """Test fewer than two peaks yields 0 SPM."""
        samples = build_cycles(make_sample, 1, period=0.8, padding=30)
        result = CadenceEstimator().analyze(samples)
        assert result.peak_count == 1
        assert result.spm == 0.0
        assert result.total_steps == 0

    def test_too_fast_clamps_to_zero(self, make_sample):
        """Test SPM above 300 is rejected as an artifact."""
        # 0.2 s cycles: 600 SPM
        samples = build_cycles(make_sample, 12, period=0.2)
        result = CadenceEstimator().analyze(samples)
        assert result.peak_count == 12
        assert result.spm == 0.0
        assert result.total_steps == 22

    def test_too_slow_clamps_to_zero(self, make_sample):
        """Test SPM below 60 is rejected as an artifact."""
        # 4 s cycles: 30 SPM
        samples = build_cycles(make_sample, 4, period=4.0)
        assert CadenceEstimator().calculate_cadence(samples) == 0.0

    def test_bounds_are_inclusive(self, make_sample):
        """Test a cadence exactly at the upper bound is accepted."""
        # 0.5 s cycles sampled every 0.0625 s: 20 steps over exactly 5.0 s
        samples = build_cycles(make_sample, 11, period=0.5)
        estimator = CadenceEstimator(CadenceConfig(max_spm=240.0))
        assert estimator.calculate_cadence(samples) == 240.0

    def test_custom_bounds(self, make_sample):
        """Test configured SPM bounds are honoured."""
        samples = build_cycles(make_sample, 11, period=0.8)
        estimator = CadenceEstimator(CadenceConfig(max_spm=120.0))
        assert estimator.calculate_cadence(samples) == 0.0


class TestLiveCadenceMonitor:
    """Test sliding-window live cadence."""

    def test_ignores_samples_when_stopped(self, make_sample):
        """Test samples are dropped before start."""
        monitor = LiveCadenceMonitor()
        monitor.add_sample(make_sample(0.0))
        assert monitor.window_size == 0

    def test_window_evicts_old_samples(self, gait_samples):
        """Test the window keeps only the last 10 s of samples."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        samples = gait_samples(duration=20.0)
        for sample in samples:
            monitor.add_sample(sample)

        newest = samples[-1].timestamp
        expected = sum(1 for s in samples if s.timestamp >= newest - 10.0)
        assert monitor.window_size == expected
        assert 200 <= monitor.window_size <= 201

    def test_recomputes_every_interval(self, gait_samples):
        """Test tick only recomputes when the 3 s interval is due."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        for sample in gait_samples(duration=10.0):
            monitor.add_sample(sample)

        assert monitor.tick(2.9) is None
        assert monitor.tick(3.0) == pytest.approx(150.0)
        assert monitor.tick(4.0) is None
        assert monitor.tick(6.0) is not None

    def test_tick_catches_up(self, gait_samples):
        """Test a late tick recomputes once and schedules the next slot."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        for sample in gait_samples(duration=10.0):
            monitor.add_sample(sample)

        assert monitor.tick(10.0) is not None
        assert monitor.tick(11.0) is None
        assert monitor.tick(12.0) is not None

    def test_total_steps_spans_whole_session(self, gait_samples):
        """Test live steps count every sample, not just the window."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        for sample in gait_samples(duration=20.0):
            monitor.add_sample(sample)

        # Peaks at 0.5 + 0.8n up to 19.7 s: 25 peaks
        assert monitor.total_steps == 48

    def test_stop_cancels_schedule(self, gait_samples):
        """Test no recompute happens after stop."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        for sample in gait_samples(duration=10.0):
            monitor.add_sample(sample)
        monitor.stop()

        assert monitor.tick(3.0) is None
        assert monitor.window_size == 0
        assert monitor.total_steps == 0
        assert not monitor.running

    def test_restart_clears_state(self, gait_samples):
        """Test start resets the window and cumulative steps."""
        monitor = LiveCadenceMonitor()
        monitor.start(0.0)
        for sample in gait_samples(duration=10.0):
            monitor.add_sample(sample)
        monitor.tick(3.0)

        monitor.start(100.0)
        assert monitor.window_size == 0
        assert monitor.total_steps == 0
        assert monitor.current_cadence == 0.0
        assert monitor.tick(102.0) is None
        assert monitor.tick(103.0) == 0.0
