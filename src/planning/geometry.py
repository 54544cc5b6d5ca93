"""
Geometry primitives for transition planning.

Distance, interpolation and sampled minimum separation between straight-line
paths, optionally offset in time by a per-vehicle start delay.
"""

import numpy as np
from typing import Dict, Sequence, Tuple

from .types import Position3D, ORIGIN, filter_assignment


# (start, end) and (start, end, delay, duration)
Path = Tuple[Position3D, Position3D]
TimedPath = Tuple[Position3D, Position3D, float, float]


def distance(p: Position3D, q: Position3D) -> float:
    """Euclidean distance between two 3D points."""
    dx = q.x - p.x
    dy = q.y - p.y
    dz = q.z - p.z
    return float(np.sqrt(dx * dx + dy * dy + dz * dz))


def lerp(t: float, p: Position3D, q: Position3D) -> Position3D:
    """Linear interpolation from p to q, with t clamped to [0, 1]."""
    t = min(1.0, max(0.0, t))
    return Position3D(
        p.x + t * (q.x - p.x),
        p.y + t * (q.y - p.y),
        p.z + t * (q.z - p.z)
    )


def total_distance(
    assignment: Dict[int, int],
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D]
) -> float:
    """Sum of straight-line travel distances for the in-range assignment pairs."""
    valid = filter_assignment(assignment, len(current_positions), len(target_positions))
    return float(sum(
        distance(current_positions[d], target_positions[s]) for d, s in valid.items()
    ))


def centroid(points: Sequence[Position3D]) -> Position3D:
    """Mean of a set of points, or the origin for an empty set."""
    if not points:
        return ORIGIN
    coords = np.array([p.as_tuple() for p in points], dtype=float)
    return Position3D.from_iterable(coords.mean(axis=0))


def path_fraction(t: float, delay: float, duration: float) -> float:
    """
    Fraction of the path covered at time t.

    Before the delay the vehicle sits at its start, after delay + duration
    it sits at its end. A zero duration path is instantaneous.
    """
    if t < delay:
        return 0.0
    if t > delay + duration:
        return 1.0
    if duration <= 0.0:
        return 1.0
    return (t - delay) / duration


def _sample_times(samples: int) -> np.ndarray:
    samples = max(1, int(samples))
    return np.arange(samples + 1, dtype=float) / samples


def _interpolate(fractions: np.ndarray, start: Position3D, end: Position3D) -> np.ndarray:
    a = start.as_array()
    b = end.as_array()
    fractions = np.clip(fractions, 0.0, 1.0)
    return a[None, :] + fractions[:, None] * (b - a)[None, :]


def _closest(positions_a: np.ndarray, positions_b: np.ndarray, times: np.ndarray) -> Tuple[float, float]:
    distances = np.linalg.norm(positions_a - positions_b, axis=1)
    # argmin returns the earliest time on ties
    idx = int(np.argmin(distances))
    return float(distances[idx]), float(times[idx])


def min_path_separation(samples: int, path_a: Path, path_b: Path) -> Tuple[float, float]:
    """
    Minimum distance between two synchronous straight-line paths.

    Both paths are evaluated at samples + 1 evenly spaced normalized times.

    Args:
        samples: Number of sampling intervals
        path_a: (start, end) of the first vehicle
        path_b: (start, end) of the second vehicle

    Returns:
        (min_distance, time_of_min_distance)
    """
    times = _sample_times(samples)
    positions_a = _interpolate(times, *path_a)
    positions_b = _interpolate(times, *path_b)
    return _closest(positions_a, positions_b, times)


def min_offset_path_separation(samples: int, path_a: TimedPath, path_b: TimedPath) -> Tuple[float, float]:
    """
    Minimum distance between two time-offset straight-line paths.

    Each path is (start, end, delay, duration) with delay and duration in
    normalized schedule time.

    Returns:
        (min_distance, time_of_min_distance)
    """
    times = _sample_times(samples)
    start_a, end_a, delay_a, duration_a = path_a
    start_b, end_b, delay_b, duration_b = path_b

    fractions_a = np.array([path_fraction(t, delay_a, duration_a) for t in times])
    fractions_b = np.array([path_fraction(t, delay_b, duration_b) for t in times])

    positions_a = _interpolate(fractions_a, start_a, end_a)
    positions_b = _interpolate(fractions_b, start_b, end_b)
    return _closest(positions_a, positions_b, times)


def timing_window(delay_step: int, delay_steps: int) -> Tuple[float, float]:
    """
    Normalized (delay, duration) for a delay step.

    With k delay steps the largest step is k - 1 and every vehicle moves for
    1 / (k + 1), so the latest start still finishes inside one time unit.
    A single delay step means no staggering at all.
    """
    if delay_steps <= 1:
        return 0.0, 0.0
    max_step = delay_steps - 1
    duration = 1.0 / (max_step + 2.0)
    delay = delay_step / (max_step + 1.0)
    return delay, duration


def schedule_samples(samples_per_path: int, delay_steps: int) -> int:
    """
    Sample count for a whole staggered schedule.

    Scaled so each vehicle's motion window gets samples_per_path samples.
    """
    if delay_steps <= 1:
        return samples_per_path
    return samples_per_path * (delay_steps + 1)
