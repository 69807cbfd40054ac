"""Tests for throughput and ETA estimation."""

import pytest

from photo_pipeline.core.progress import ThroughputEstimator
from photo_pipeline.testing.fakes import FakeClock


class TestThroughputEstimator:
    """Tests for ThroughputEstimator."""

    def test_no_samples(self):
        estimator = ThroughputEstimator(3, [100, 100, 100], clock=FakeClock(step=0))
        assert estimator.bytes_per_second() == 0.0
        assert estimator.seconds_per_file() == 0.0
        assert estimator.eta_seconds() == 0.0

    def test_rate_over_wall_span(self):
        clock = FakeClock(start=0.0, step=0)
        estimator = ThroughputEstimator(4, [1000, 1000, 2000, 2000], clock=clock)
        estimator.record(1000, finished_at=1.0)
        estimator.record(1000, finished_at=2.0)
        assert estimator.bytes_per_second() == pytest.approx(1000.0)
        assert estimator.seconds_per_file() == pytest.approx(1.0)
        assert estimator.eta_seconds() == pytest.approx(4.0)

    def test_window_drops_old_samples(self):
        estimator = ThroughputEstimator(10, clock=FakeClock(start=0.0, step=0), window=2)
        estimator.record(100, finished_at=1.0)
        estimator.record(100, finished_at=2.0)
        estimator.record(1000, finished_at=3.0)
        # Window holds the last two samples, anchored at the one before them.
        assert estimator.bytes_per_second() == pytest.approx(1100 / 2.0)
        assert estimator.completed == 3
        assert estimator.bytes_done == 1200

    def test_eta_falls_back_to_file_rate(self):
        estimator = ThroughputEstimator(5, clock=FakeClock(start=0.0, step=0))
        estimator.record(0, finished_at=2.0)
        assert estimator.eta_seconds() == pytest.approx(8.0)

    def test_eta_is_zero_when_done(self):
        estimator = ThroughputEstimator(1, [10], clock=FakeClock(start=0.0, step=0))
        estimator.record(10, finished_at=1.0)
        assert estimator.eta_seconds() == 0.0

    def test_eta_never_negative(self):
        estimator = ThroughputEstimator(2, [10, 10], clock=FakeClock(start=5.0, step=0))
        estimator.record(10, finished_at=1.0)
        assert estimator.eta_seconds() >= 0.0
        assert estimator.eta_seconds(completed=7) == 0.0

    def test_elapsed_uses_clock(self):
        clock = FakeClock(start=10.0, step=0)
        estimator = ThroughputEstimator(1, clock=clock)
        clock.advance(3.5)
        assert estimator.elapsed_seconds == pytest.approx(3.5)
