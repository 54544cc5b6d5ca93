"""
Unit tests for planning geometry.

Tests distance, interpolation, path sampling and staggered timing windows.
"""

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from planning.types import Position3D, ORIGIN
from planning.geometry import (
    distance,
    lerp,
    centroid,
    path_fraction,
    min_path_separation,
    min_offset_path_separation,
    timing_window,
    schedule_samples,
    total_distance,
)


class TestDistance:
    """Test Euclidean distance and interpolation."""

    def test_distance_345(self):
        """Test a 3-4-5 triangle."""
        assert distance(Position3D(0, 0, 0), Position3D(3, 4, 0)) == pytest.approx(5.0)

    def test_distance_symmetric(self):
        """Test distance does not depend on argument order."""
        p = Position3D(1.0, -2.0, 3.0)
        q = Position3D(-4.0, 5.0, 0.5)
        assert distance(p, q) == pytest.approx(distance(q, p))

    def test_lerp_midpoint(self):
        """Test interpolation halfway."""
        mid = lerp(0.5, Position3D(0, 0, 0), Position3D(10, 20, 30))
        assert mid == Position3D(5.0, 10.0, 15.0)

    def test_lerp_clamps(self):
        """Test t outside [0, 1] is clamped."""
        end = Position3D(10.0, 0.0, 0.0)
        assert lerp(2.0, ORIGIN, end) == end
        assert lerp(-1.0, ORIGIN, end) == ORIGIN

    def test_centroid(self):
        """Test centroid of points and of an empty set."""
        points = [Position3D(0, 0, 0), Position3D(4, 2, 6)]
        assert centroid(points) == Position3D(2.0, 1.0, 3.0)
        assert centroid([]) == ORIGIN


class TestTotalDistance:
    """Test summed travel distance of an assignment."""

    def test_sum_of_pairs(self):
        current = [Position3D(0, 0, 0), Position3D(10, 0, 0)]
        targets = [Position3D(0, 3, 4), Position3D(10, 0, 1)]
        assert total_distance({0: 0, 1: 1}, current, targets) == pytest.approx(6.0)

    def test_out_of_range_pairs_skipped(self):
        """Test invalid vehicle or slot indices contribute nothing."""
        current = [Position3D(0, 0, 0)]
        targets = [Position3D(3, 4, 0)]
        assert total_distance({1: 0, 0: 5}, current, targets) == 0.0
        assert total_distance({0: 0, 7: 0}, current, targets) == pytest.approx(5.0)

    def test_empty_assignment(self):
        assert total_distance({}, [], []) == 0.0


class TestPathFraction:
    """Test progress along a delayed path."""

    def test_before_delay(self):
        assert path_fraction(0.1, 0.2, 0.5) == 0.0

    def test_after_window(self):
        assert path_fraction(0.9, 0.2, 0.5) == 1.0

    def test_inside_window(self):
        assert path_fraction(0.45, 0.2, 0.5) == pytest.approx(0.5)

    def test_zero_duration_is_instantaneous(self):
        """Test a zero-length window never divides by zero."""
        assert path_fraction(0.0, 0.0, 0.0) == 1.0
        assert path_fraction(0.5, 0.5, 0.0) == 1.0


class TestMinPathSeparation:
    """Test sampled minimum separation."""

    def test_head_on_meets_at_midpoint(self):
        """Test two vehicles swapping places meet at t=0.5."""
        a = (Position3D(-5, 0, 0), Position3D(5, 0, 0))
        b = (Position3D(5, 0, 0), Position3D(-5, 0, 0))
        dist, t = min_path_separation(20, a, b)
        assert dist == pytest.approx(0.0)
        assert t == pytest.approx(0.5)

    def test_parallel_paths_keep_offset(self):
        """Test parallel paths stay at their lateral offset."""
        a = (Position3D(0, 0, 0), Position3D(0, 0, 10))
        b = (Position3D(3, 0, 0), Position3D(3, 0, 10))
        dist, t = min_path_separation(20, a, b)
        assert dist == pytest.approx(3.0)
        # Earliest sample wins on ties
        assert t == 0.0

    def test_more_samples_never_report_larger_minimum(self):
        """Test refining the sampling can only find equal or closer approaches."""
        a = (Position3D(-5, 0, 0), Position3D(5, 0.3, 0))
        b = (Position3D(4, 1, 0), Position3D(-6, 1.7, 0))
        coarse, _ = min_path_separation(10, a, b)
        medium, _ = min_path_separation(20, a, b)
        fine, _ = min_path_separation(40, a, b)
        assert medium <= coarse
        assert fine <= medium


class TestOffsetSeparation:
    """Test separation of time-offset paths."""

    def test_delay_avoids_crossing(self):
        """Test that delaying one of two crossing vehicles keeps them apart."""
        a = (Position3D(-5, 0, 0), Position3D(5, 0, 0), 0.0, 0.2)
        b = (Position3D(0, -5, 0), Position3D(0, 5, 0), 0.25, 0.2)
        dist, _ = min_offset_path_separation(100, a, b)
        assert dist == pytest.approx(5.0)

    def test_simultaneous_crossing_collides(self):
        a = (Position3D(-5, 0, 0), Position3D(5, 0, 0), 0.0, 0.2)
        b = (Position3D(0, -5, 0), Position3D(0, 5, 0), 0.0, 0.2)
        dist, _ = min_offset_path_separation(100, a, b)
        assert dist == pytest.approx(0.0)


class TestTimingWindow:
    """Test delay step to schedule window conversion."""

    def test_four_steps(self):
        """Test windows for the default four delay steps."""
        assert timing_window(0, 4) == (0.0, pytest.approx(0.2))
        delay, duration = timing_window(3, 4)
        assert delay == pytest.approx(0.75)
        assert delay + duration <= 1.0

    def test_single_step_is_degenerate(self):
        assert timing_window(0, 1) == (0.0, 0.0)

    def test_schedule_samples(self):
        """Test each motion window keeps its per-path sample count."""
        assert schedule_samples(20, 4) == 100
        assert schedule_samples(20, 1) == 20


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
