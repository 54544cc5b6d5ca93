"""
Quadratic binary (QUBO) encodings for formation planning.

Two problem shapes are encoded as dense symmetric cost matrices over binary
variables x[i, j], linearized as index = i * cols + j:

- assignment: vehicle x slot, objective = travel distance, one slot per
  vehicle (hard) and at most one vehicle per slot (soft)
- timing: vehicle x delay step, one delay per vehicle, pairwise penalties
  for delay combinations whose paths come closer than the minimum separation
"""

import numpy as np
import logging
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass
from enum import Enum

from .types import Position3D, PlanningConstraints
from .geometry import distance, min_offset_path_separation, timing_window, schedule_samples

logger = logging.getLogger(__name__)


class ModelKind(Enum):
    """Problem shape encoded by a quadratic model."""
    ASSIGNMENT = "assignment"
    TIMING = "timing"


@dataclass(frozen=True)
class QuadraticModel:
    """
    Dense quadratic binary cost model.

    Attributes:
        matrix: (rows * cols) x (rows * cols) coefficient matrix
        rows: Number of entities (vehicles)
        cols: Number of categories (slots or delay steps)
        kind: Problem shape
    """
    matrix: np.ndarray
    rows: int
    cols: int
    kind: ModelKind

    def __post_init__(self):
        n = self.rows * self.cols
        if self.matrix.shape != (n, n):
            raise ValueError(
                f"Matrix shape {self.matrix.shape} does not match {self.rows}x{self.cols} variables"
            )

    @property
    def num_variables(self) -> int:
        return self.rows * self.cols

    def index(self, i: int, j: int) -> int:
        """Linear variable index of cell (i, j)."""
        if not (0 <= i < self.rows and 0 <= j < self.cols):
            raise IndexError(f"Cell ({i}, {j}) outside {self.rows}x{self.cols} model")
        return i * self.cols + j

    def energy(self, bits: Sequence[int]) -> float:
        """Objective value x^T Q x of a bit vector."""
        x = np.asarray(bits, dtype=float)
        if x.shape != (self.num_variables,):
            raise ValueError(f"Expected {self.num_variables} bits, got {x.shape}")
        return float(x @ self.matrix @ x)


def lucas_penalty(max_distance: float, n: int) -> float:
    """
    Constraint penalty weight large enough to dominate the objective.

    max distance x problem size x 2.
    """
    return max_distance * max(1, n) * 2.0


def build_distance_matrix(
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D]
) -> np.ndarray:
    """Distance from every current position (rows) to every target (columns)."""
    matrix = np.zeros((len(current_positions), len(target_positions)))
    for i, start in enumerate(current_positions):
        for j, end in enumerate(target_positions):
            matrix[i, j] = distance(start, end)
    return matrix


def encode_assignment(distance_matrix: np.ndarray) -> QuadraticModel:
    """
    Encode a vehicle-to-slot assignment as a quadratic model.

    Objective: minimize sum d[i, j] * x[i, j].
    Constraint 1: each vehicle takes exactly one slot,
        penalty * (sum_j x[i, j] - 1)^2 -> -penalty on the diagonal,
        +2 * penalty on every pair in the same row.
    Constraint 2: each slot holds at most one vehicle, soft weight
        penalty / 2 on every pair in the same column since slots may stay
        empty when there are more slots than vehicles.

    Args:
        distance_matrix: (vehicles x slots) travel distances

    Returns:
        Assignment shaped QuadraticModel
    """
    distance_matrix = np.asarray(distance_matrix, dtype=float)
    if distance_matrix.ndim != 2:
        raise ValueError("Distance matrix must be two dimensional")
    n, m = distance_matrix.shape
    q = np.zeros((n * m, n * m))

    if n == 0 or m == 0:
        return QuadraticModel(q, n, m, ModelKind.ASSIGNMENT)

    penalty = lucas_penalty(float(distance_matrix.max()), max(n, m))

    for i in range(n):
        for j in range(m):
            idx = i * m + j
            q[idx, idx] = distance_matrix[i, j] - penalty

    # One slot per vehicle
    for i in range(n):
        for j1 in range(m):
            for j2 in range(j1 + 1, m):
                idx1 = i * m + j1
                idx2 = i * m + j2
                q[idx1, idx2] += 2.0 * penalty
                q[idx2, idx1] += 2.0 * penalty

    # At most one vehicle per slot
    soft_penalty = penalty * 0.5
    for j in range(m):
        for i1 in range(n):
            for i2 in range(i1 + 1, n):
                idx1 = i1 * m + j
                idx2 = i2 * m + j
                q[idx1, idx2] += 2.0 * soft_penalty
                q[idx2, idx1] += 2.0 * soft_penalty

    logger.debug(f"Encoded assignment model: {n}x{m}, penalty={penalty:.2f}")
    return QuadraticModel(q, n, m, ModelKind.ASSIGNMENT)


def encode_timing(
    paths: Sequence[tuple],
    constraints: PlanningConstraints,
    penalty: float
) -> QuadraticModel:
    """
    Encode per-vehicle start delay selection as a quadratic model.

    Variables x[d, k] = 1 if vehicle row d starts at delay step k.

    Args:
        paths: (start, end) per vehicle row
        constraints: Separation, delay steps and sampling
        penalty: One-hot constraint weight

    Returns:
        Timing shaped QuadraticModel
    """
    n = len(paths)
    k = constraints.delay_steps
    q = np.zeros((n * k, n * k))
    samples = schedule_samples(constraints.samples_per_path, k)

    # One delay per vehicle
    for d in range(n):
        for step in range(k):
            idx = d * k + step
            q[idx, idx] -= penalty
        for k1 in range(k):
            for k2 in range(k1 + 1, k):
                idx1 = d * k + k1
                idx2 = d * k + k2
                q[idx1, idx2] += 2.0 * penalty
                q[idx2, idx1] += 2.0 * penalty

    # Penalize delay combinations that bring two vehicles too close
    windows = [timing_window(step, k) for step in range(k)]
    for d1 in range(n):
        start1, end1 = paths[d1]
        for d2 in range(d1 + 1, n):
            start2, end2 = paths[d2]
            for k1 in range(k):
                delay1, duration1 = windows[k1]
                for k2 in range(k):
                    delay2, duration2 = windows[k2]
                    min_dist, _ = min_offset_path_separation(
                        samples,
                        (start1, end1, delay1, duration1),
                        (start2, end2, delay2, duration2)
                    )
                    if min_dist < constraints.min_separation_meters:
                        violation = constraints.min_separation_meters - min_dist
                        weight = violation * penalty * 0.5
                        idx1 = d1 * k + k1
                        idx2 = d2 * k + k2
                        q[idx1, idx2] += weight
                        q[idx2, idx1] += weight

    # Slight preference for starting earlier
    for d in range(n):
        for step in range(k):
            idx = d * k + step
            q[idx, idx] += step * 0.1

    return QuadraticModel(q, n, k, ModelKind.TIMING)


def _row_choices(bits: Sequence[int], rows: int, cols: int) -> Optional[List[int]]:
    bits = np.asarray(bits).astype(int).ravel()
    if bits.shape[0] != rows * cols:
        return None
    grid = bits.reshape(rows, cols)
    choices = []
    for i in range(rows):
        selected = np.flatnonzero(grid[i] == 1)
        if len(selected) != 1:
            return None
        choices.append(int(selected[0]))
    return choices


def decode_assignment(bits: Sequence[int], rows: int, cols: int) -> Optional[Dict[int, int]]:
    """
    Decode an assignment bit vector to {row: column}.

    Returns None unless every row has exactly one set bit and no column is
    used twice.
    """
    choices = _row_choices(bits, rows, cols)
    if choices is None:
        return None
    if len(set(choices)) != len(choices):
        return None
    return dict(enumerate(choices))


def decode_timing(bits: Sequence[int], rows: int, cols: int) -> Optional[Dict[int, int]]:
    """
    Decode a timing bit vector to {row: delay step}.

    Returns None unless every row has exactly one set bit. Several vehicles
    may share a delay step.
    """
    choices = _row_choices(bits, rows, cols)
    if choices is None:
        return None
    return dict(enumerate(choices))
