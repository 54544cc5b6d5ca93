"""
Formation adaptation for a shrinking or regrowing roster.

When vehicles depart the remaining ones are assigned to the subset of
formation slots closest to their centroid, keeping the assignment model
square (n vehicles x n slots) so it stays within the oracle's variable
ceiling. Every replan takes a new generation number so callers can discard
results superseded by a newer replan.
"""

import time
import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

import numpy as np

from planning.types import Position3D, Formation
from planning.geometry import distance, centroid
from planning.oracle import CombinatorialOracle
from planning.solver import AssignmentProblem, solve, MAX_ORACLE_VARIABLES
from .state import SwarmState

logger = logging.getLogger(__name__)

# Distance used for a vehicle whose position has never been reported
UNKNOWN_POSITION_DISTANCE = 1000.0

METHOD_NO_ACTIVE = "NoActiveDrones"


class GenerationCounter:
    """Strictly increasing sequence number, safe under concurrent increment."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Increment and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        """Current value without incrementing."""
        with self._lock:
            return self._value


_generations = GenerationCounter()


def next_generation() -> int:
    """Start a new replan generation and return its number."""
    return _generations.next()


def current_generation() -> int:
    """Number of the most recent replan generation."""
    return _generations.value


@dataclass(frozen=True)
class AdaptationResult:
    """
    Outcome of one replan.

    Attributes:
        assignments: {vehicle id: slot index in the full formation}
        selected_positions: Slot indices chosen for this roster
        holding_vehicles: Vehicles currently holding
        departed_vehicles: Vehicles out of formation
        used_oracle: True if the oracle produced the assignment
        compute_time_ms: Elapsed compute time
        method: How the assignment was produced
        generation: Generation number of this replan
        was_cancelled: Always False (replans run to completion)
    """
    assignments: Dict[int, int]
    selected_positions: Tuple[int, ...]
    holding_vehicles: Tuple[int, ...]
    departed_vehicles: Tuple[int, ...]
    used_oracle: bool
    compute_time_ms: float
    method: str
    generation: int
    was_cancelled: bool = False

    def is_stale(self, latest_generation: Optional[int] = None) -> bool:
        """True if a newer replan has started since this one."""
        latest = current_generation() if latest_generation is None else latest_generation
        return self.generation < latest


def select_positions(
    positions: Sequence[Position3D],
    formation: Formation,
    drone_count: int
) -> List[int]:
    """
    Pick the slots a roster of drone_count vehicles should fill.

    Args:
        positions: Known positions of the roster vehicles
        formation: Full target formation
        drone_count: Roster size

    Returns:
        All slot indices if drone_count covers the formation, otherwise the
        drone_count slots nearest the roster centroid (lower index on ties)
    """
    slots = formation.positions
    if drone_count >= len(slots):
        return list(range(len(slots)))

    center = centroid(list(positions))
    ranked = sorted(range(len(slots)), key=lambda j: (distance(center, slots[j]), j))
    return ranked[:max(0, drone_count)]


def build_distance_matrix(
    positions: Dict[int, Position3D],
    formation: Formation,
    selected: Sequence[int],
    drone_ids: Sequence[int]
) -> np.ndarray:
    """(vehicles x selected slots) distances; unknown positions get a large constant."""
    matrix = np.full((len(drone_ids), len(selected)), UNKNOWN_POSITION_DISTANCE)
    for row, drone_id in enumerate(drone_ids):
        position = positions.get(drone_id)
        if position is None:
            continue
        for col, slot in enumerate(selected):
            matrix[row, col] = distance(position, formation.positions[slot])
    return matrix


def greedy_assignment(distance_matrix: np.ndarray, drone_ids: Sequence[int]) -> Dict[int, int]:
    """Nearest neighbor assignment {vehicle id: column}."""
    return AssignmentProblem(distance_matrix, drone_ids).greedy()


def adapt_formation(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    state: SwarmState,
    formation: Formation,
    max_compute_time_ms: float,
    variable_ceiling: int = MAX_ORACLE_VARIABLES
) -> AdaptationResult:
    """
    Reassign the current roster to a formation.

    The roster is every Active, Holding or Returning vehicle.

    Args:
        oracle: Optimization backend (None = greedy only)
        shots: Oracle samples
        state: Current swarm state
        formation: Target formation
        max_compute_time_ms: Compute budget

    Returns:
        AdaptationResult with a fresh generation number
    """
    start = time.perf_counter()
    generation = next_generation()

    roster = sorted(state.active_vehicles() + state.returning_vehicles())
    holding = tuple(state.holding_vehicles())
    departed = tuple(d for d, _, _ in state.departed_vehicles())

    if not roster:
        logger.warning(f"Generation {generation}: no active vehicles for {formation.name}")
        return AdaptationResult(
            assignments={},
            selected_positions=(),
            holding_vehicles=holding,
            departed_vehicles=departed,
            used_oracle=False,
            compute_time_ms=(time.perf_counter() - start) * 1000.0,
            method=METHOD_NO_ACTIVE,
            generation=generation,
        )

    known = state.positions
    roster_positions = [known[d] for d in roster if d in known]
    selected = select_positions(roster_positions, formation, len(roster))

    matrix = build_distance_matrix(known, formation, selected, roster)
    problem = AssignmentProblem(matrix, roster)
    outcome = solve(problem, oracle, variable_ceiling, max_compute_time_ms, shots)

    assignments = {d: selected[col] for d, col in outcome.solution.items()}
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    logger.info(
        f"Generation {generation}: {len(roster)} vehicles -> {formation.name} "
        f"slots {selected} via {outcome.method} ({elapsed_ms:.1f}ms)"
    )

    return AdaptationResult(
        assignments=assignments,
        selected_positions=tuple(selected),
        holding_vehicles=holding,
        departed_vehicles=departed,
        used_oracle=outcome.used_oracle,
        compute_time_ms=elapsed_ms,
        method=outcome.method,
        generation=generation,
    )
