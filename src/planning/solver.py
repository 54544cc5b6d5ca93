"""
Solve orchestration: oracle sampling with a classical fallback.

A problem wraps its quadratic model together with how to decode a sample
and how to solve it greedily. solve() decides whether the oracle is worth
calling, keeps the lowest-energy valid sample, and falls back to the greedy
heuristic whenever the oracle is skipped, fails, or yields nothing valid.
"""

import numpy as np
import logging
import time
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass

from .types import Position3D, PlanningConstraints
from .geometry import min_offset_path_separation, timing_window, schedule_samples, distance
from .qubo import (
    encode_assignment,
    encode_timing,
    decode_assignment,
    decode_timing,
    build_distance_matrix,
    lucas_penalty,
)
from .oracle import CombinatorialOracle, OracleError

logger = logging.getLogger(__name__)

# Largest model sent to the oracle (n vehicles * n slots: 4 vehicles = 16)
MAX_ORACLE_VARIABLES = 20

# Below this budget the oracle is skipped
MIN_ORACLE_BUDGET_MS = 100

DEFAULT_TIME_BUDGET_MS = 5000
DEFAULT_SHOTS = 1000


@dataclass(frozen=True)
class SolveOutcome:
    """
    Result of one solve call.

    Attributes:
        solution: {vehicle id: category} (slot index or delay step)
        used_oracle: True if the solution came from an oracle sample
        method: Human readable description of how it was produced
    """
    solution: Dict[int, int]
    used_oracle: bool
    method: str


class AssignmentProblem:
    """Vehicle-to-slot assignment minimizing total travel distance."""

    name = "assignment"

    def __init__(self, distance_matrix: np.ndarray, vehicle_ids: Optional[Sequence[int]] = None):
        """
        Args:
            distance_matrix: (vehicles x slots) distances
            vehicle_ids: Vehicle id of each row (default 0..n-1)
        """
        self.distance_matrix = np.asarray(distance_matrix, dtype=float)
        rows = self.distance_matrix.shape[0]
        self.vehicle_ids = list(vehicle_ids) if vehicle_ids is not None else list(range(rows))
        if len(self.vehicle_ids) != rows:
            raise ValueError("One vehicle id is required per distance matrix row")
        self.model = encode_assignment(self.distance_matrix)

    def decode(self, bits: Sequence[int]) -> Optional[Dict[int, int]]:
        rows = decode_assignment(bits, self.model.rows, self.model.cols)
        if rows is None:
            return None
        return {self.vehicle_ids[row]: slot for row, slot in rows.items()}

    def greedy(self) -> Dict[int, int]:
        """
        Nearest neighbor heuristic.

        Vehicles in row order each take their closest unused slot (lowest
        slot index on ties).
        """
        _, m = self.distance_matrix.shape
        used = set()
        assignment = {}
        for row, drone_id in enumerate(self.vehicle_ids):
            best_slot = -1
            best_dist = float('inf')
            for slot in range(m):
                if slot in used:
                    continue
                dist = self.distance_matrix[row, slot]
                if dist < best_dist:
                    best_dist = dist
                    best_slot = slot
            if best_slot >= 0:
                used.add(best_slot)
                assignment[drone_id] = best_slot
        return assignment

    def cost(self, solution: Dict[int, int]) -> float:
        """Total distance of a solution."""
        rows = {drone_id: row for row, drone_id in enumerate(self.vehicle_ids)}
        return float(sum(self.distance_matrix[rows[d], s] for d, s in solution.items()))


class TimingProblem:
    """Per-vehicle start delay selection for a fixed set of straight paths."""

    name = "timing"

    def __init__(
        self,
        paths: Dict[int, tuple],
        constraints: PlanningConstraints
    ):
        """
        Args:
            paths: {vehicle id: (start, end)}
            constraints: Separation, delay steps and sampling
        """
        self.vehicle_ids = sorted(paths.keys())
        self.paths = [paths[d] for d in self.vehicle_ids]
        self.constraints = constraints

        distances = [distance(start, end) for start, end in self.paths]
        max_dist = max(distances) if distances else 1.0
        self.penalty = lucas_penalty(max_dist, len(self.paths))
        self.model = encode_timing(self.paths, constraints, self.penalty)

    def decode(self, bits: Sequence[int]) -> Optional[Dict[int, int]]:
        rows = decode_timing(bits, self.model.rows, self.model.cols)
        if rows is None:
            return None
        return {self.vehicle_ids[row]: step for row, step in rows.items()}

    def greedy(self) -> Dict[int, int]:
        """
        Sequential greedy delay selection.

        Vehicles in id order try every delay step against the vehicles
        already scheduled and keep the step with the largest worst-case
        separation (smallest step on ties).
        """
        k = self.constraints.delay_steps
        samples = schedule_samples(self.constraints.samples_per_path, k)
        scheduled: List[tuple] = []
        timings = {}

        for drone_id, (start, end) in zip(self.vehicle_ids, self.paths):
            best_step = 0
            best_separation = -1.0
            for step in range(k):
                delay, duration = timing_window(step, k)
                candidate = (start, end, delay, duration)
                worst = float('inf')
                for other in scheduled:
                    separation, _ = min_offset_path_separation(samples, candidate, other)
                    worst = min(worst, separation)
                if worst > best_separation:
                    best_separation = worst
                    best_step = step
            delay, duration = timing_window(best_step, k)
            scheduled.append((start, end, delay, duration))
            timings[drone_id] = best_step

        return timings


def _sample_oracle(
    problem,
    oracle: CombinatorialOracle,
    candidate_samples: int
) -> Optional[Dict[int, int]]:
    """Lowest-energy valid decode among the oracle samples, if any."""
    state = oracle.execute(problem.model)
    samples = oracle.measure(state, candidate_samples)

    best = None
    best_energy = float('inf')
    invalid = 0
    for bits in samples:
        solution = problem.decode(bits)
        if solution is None:
            invalid += 1
            continue
        energy = problem.model.energy(bits)
        if energy < best_energy:
            best_energy = energy
            best = solution

    logger.debug(f"{len(samples) - invalid}/{len(samples)} valid samples for {problem.name} model")
    return best


def solve(
    problem,
    oracle: Optional[CombinatorialOracle],
    variable_ceiling: int = MAX_ORACLE_VARIABLES,
    time_budget_ms: float = DEFAULT_TIME_BUDGET_MS,
    candidate_samples: int = DEFAULT_SHOTS
) -> SolveOutcome:
    """
    Solve a problem with the oracle when allowed, greedily otherwise.

    Args:
        problem: AssignmentProblem or TimingProblem
        oracle: Injected backend, or None to force the classical path
        variable_ceiling: Largest model the oracle may receive
        time_budget_ms: Caller's compute budget
        candidate_samples: Number of oracle draws

    Returns:
        SolveOutcome; never raises for oracle failures
    """
    num_vars = problem.model.num_variables

    if oracle is None:
        reason = "no oracle configured"
    elif num_vars == 0:
        reason = "empty problem"
    elif num_vars > variable_ceiling:
        reason = f"problem too large ({num_vars} variables > {variable_ceiling} max)"
    elif time_budget_ms < MIN_ORACLE_BUDGET_MS:
        reason = f"time budget too small ({time_budget_ms}ms)"
    else:
        reason = None

    if reason is not None:
        logger.info(f"Skipping oracle for {problem.name}: {reason}")
        return SolveOutcome(problem.greedy(), False, f"Greedy ({reason})")

    start = time.perf_counter()
    try:
        solution = _sample_oracle(problem, oracle, candidate_samples)
    except OracleError as e:
        logger.warning(f"Oracle failed for {problem.name} model: {e}")
        return SolveOutcome(problem.greedy(), False, "Greedy (oracle error)")

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if solution is None:
        logger.warning(f"No valid oracle sample for {problem.name} model, using greedy")
        return SolveOutcome(
            problem.greedy(), False, "Greedy (oracle fallback - no valid sample)"
        )

    logger.info(f"Oracle solved {problem.name} model in {elapsed_ms:.1f}ms")
    return SolveOutcome(
        solution,
        True,
        f"Oracle ({num_vars} variables, {candidate_samples} samples)"
    )


def solve_assignment(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    variable_ceiling: int = MAX_ORACLE_VARIABLES,
    time_budget_ms: float = DEFAULT_TIME_BUDGET_MS
) -> SolveOutcome:
    """Assign vehicles 0..n-1 to target slots."""
    problem = AssignmentProblem(build_distance_matrix(current_positions, target_positions))
    return solve(problem, oracle, variable_ceiling, time_budget_ms, shots)
