"""
Collision-free transition planning.

Checks whether the straight-line paths of an assignment keep every pair of
vehicles at least the minimum separation apart. Safe transitions fly
directly; unsafe ones get staggered start delays chosen by the solve
orchestrator (timing model), with a sequential greedy schedule when the
oracle's schedule does not verify.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .types import (
    Position3D,
    Formation,
    Waypoint,
    DronePath,
    CollisionRisk,
    CollisionFreePlan,
    PlanningConstraints,
    DEFAULT_CONSTRAINTS,
    filter_assignment,
)
from .geometry import (
    min_path_separation,
    min_offset_path_separation,
    timing_window,
    schedule_samples,
    total_distance,
)
from .oracle import CombinatorialOracle
from .solver import (
    TimingProblem,
    solve,
    MAX_ORACLE_VARIABLES,
    DEFAULT_TIME_BUDGET_MS,
)

logger = logging.getLogger(__name__)

METHOD_DIRECT = "Direct"
METHOD_STAGGERED = "StaggeredTiming"


def _valid_paths(
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int]
) -> Dict[int, Tuple[Position3D, Position3D]]:
    """(start, end) per vehicle for the in-range assignment pairs."""
    valid = filter_assignment(assignment, len(current_positions), len(target_positions))
    if len(valid) != len(assignment):
        logger.warning(f"Ignoring {len(assignment) - len(valid)} out-of-range assignment pairs")
    return {
        drone_id: (current_positions[drone_id], target_positions[slot])
        for drone_id, slot in sorted(valid.items())
    }


def check_pair_collision(
    constraints: PlanningConstraints,
    path_a: Tuple[int, Position3D, Position3D],
    path_b: Tuple[int, Position3D, Position3D]
) -> Optional[CollisionRisk]:
    """
    Check if two straight-line paths violate minimum separation.

    Args:
        constraints: Planning constraints
        path_a: (drone id, start, end)
        path_b: (drone id, start, end)

    Returns:
        PotentialCollision risk, or None if the pair stays separated
    """
    drone_a, start_a, end_a = path_a
    drone_b, start_b, end_b = path_b
    min_dist, time_of_min = min_path_separation(
        constraints.samples_per_path, (start_a, end_a), (start_b, end_b)
    )
    if min_dist < constraints.min_separation_meters:
        return CollisionRisk.collision(drone_a, drone_b, time_of_min, min_dist)
    return None


def detect_collisions(
    constraints: PlanningConstraints,
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int]
) -> CollisionRisk:
    """
    Check all vehicle pairs of a direct transition.

    Returns:
        Safe(min separation) when no pair is too close, otherwise the single
        collision or all of them
    """
    paths = _valid_paths(current_positions, target_positions, assignment)
    drone_ids = list(paths.keys())
    pairs = [
        ((drone_a, *paths[drone_a]), (drone_b, *paths[drone_b]))
        for i, drone_a in enumerate(drone_ids)
        for drone_b in drone_ids[i + 1:]
    ]

    collisions: List[CollisionRisk] = []
    for path_a, path_b in pairs:
        risk = check_pair_collision(constraints, path_a, path_b)
        if risk is not None:
            collisions.append(risk)
    if collisions:
        return CollisionRisk.from_collisions(collisions, 0.0)

    # With fewer than two vehicles there is nothing to collide with
    if not pairs:
        return CollisionRisk.safe(constraints.min_separation_meters)
    return CollisionRisk.safe(min(
        min_path_separation(constraints.samples_per_path, a[1:], b[1:])[0]
        for a, b in pairs
    ))


def check_timing_collisions(
    constraints: PlanningConstraints,
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int],
    timings: Dict[int, int]
) -> CollisionRisk:
    """
    Check all vehicle pairs of a staggered transition.

    Args:
        constraints: Planning constraints
        current_positions: Start position per vehicle id
        target_positions: Formation slots
        assignment: {drone id: slot}
        timings: {drone id: delay step}; missing vehicles start at step 0

    Returns:
        CollisionRisk over the whole normalized schedule
    """
    paths = _valid_paths(current_positions, target_positions, assignment)
    k = constraints.delay_steps
    samples = schedule_samples(constraints.samples_per_path, k)

    timed = {}
    for drone_id, (start, end) in paths.items():
        delay, duration = timing_window(timings.get(drone_id, 0), k)
        timed[drone_id] = (start, end, delay, duration)

    drone_ids = list(timed.keys())
    collisions: List[CollisionRisk] = []
    separations: List[float] = []
    for i, drone_a in enumerate(drone_ids):
        for drone_b in drone_ids[i + 1:]:
            min_dist, time_of_min = min_offset_path_separation(
                samples, timed[drone_a], timed[drone_b]
            )
            separations.append(min_dist)
            if min_dist < constraints.min_separation_meters:
                collisions.append(
                    CollisionRisk.collision(drone_a, drone_b, time_of_min, min_dist)
                )

    min_separation = min(separations) if separations else constraints.min_separation_meters
    return CollisionRisk.from_collisions(collisions, min_separation)


def validate_transition(
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int],
    constraints: PlanningConstraints = DEFAULT_CONSTRAINTS
) -> CollisionRisk:
    """Check a transition for collision risks without solving anything."""
    return detect_collisions(constraints, current_positions, target_positions, assignment)


def _direct_paths(
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int]
) -> Tuple[DronePath, ...]:
    paths = _valid_paths(current_positions, target_positions, assignment)
    return tuple(
        DronePath(
            drone_id=drone_id,
            waypoints=(
                Waypoint(position=start, arrival_time=0.0, dwell_time=0.0),
                Waypoint(position=end, arrival_time=1.0, dwell_time=0.0),
            )
        )
        for drone_id, (start, end) in paths.items()
    )


def _staggered_paths(
    current_positions: Sequence[Position3D],
    target_positions: Sequence[Position3D],
    assignment: Dict[int, int],
    timings: Dict[int, int],
    delay_steps: int
) -> Tuple[DronePath, ...]:
    paths = _valid_paths(current_positions, target_positions, assignment)
    staggered = []
    for drone_id, (start, end) in paths.items():
        delay, duration = timing_window(timings.get(drone_id, 0), delay_steps)
        staggered.append(DronePath(
            drone_id=drone_id,
            waypoints=(
                Waypoint(position=start, arrival_time=0.0, dwell_time=delay),
                Waypoint(position=end, arrival_time=delay + duration, dwell_time=0.0),
            )
        ))
    return tuple(staggered)


def plan_transition(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    current_positions: Sequence[Position3D],
    target_formation: Formation,
    assignment: Dict[int, int],
    constraints: PlanningConstraints = DEFAULT_CONSTRAINTS,
    variable_ceiling: int = MAX_ORACLE_VARIABLES,
    time_budget_ms: float = DEFAULT_TIME_BUDGET_MS
) -> CollisionFreePlan:
    """
    Plan collision-free paths for a formation transition.

    If the direct paths are safe they are returned unchanged. Otherwise the
    timing model is solved for per-vehicle start delays and the resulting
    schedule is verified again. A schedule that still violates separation
    is returned with min_achieved_separation = 0.0.

    Args:
        oracle: Injected optimization backend (None = classical only)
        shots: Oracle samples for the timing model
        current_positions: Start position per vehicle id
        target_formation: Destination formation
        assignment: {drone id: slot index}
        constraints: Planning constraints

    Returns:
        CollisionFreePlan
    """
    targets = target_formation.positions
    valid = filter_assignment(assignment, len(current_positions), len(targets))
    distance_total = total_distance(valid, current_positions, targets)

    risk = detect_collisions(constraints, current_positions, targets, valid)

    if risk.is_safe:
        logger.info(f"Direct transition to {target_formation.name}: {risk.describe()}")
        return CollisionFreePlan(
            paths=_direct_paths(current_positions, targets, valid),
            original_assignments=dict(valid),
            total_distance=distance_total,
            min_achieved_separation=risk.min_separation,
            max_delay=0.0,
            method=METHOD_DIRECT,
            solver_method="Direct (No Collisions Detected)",
        )

    logger.info(f"Transition to {target_formation.name} needs staggering: {risk.describe()}")

    paths = _valid_paths(current_positions, targets, valid)
    problem = TimingProblem(paths, constraints)
    outcome = solve(problem, oracle, variable_ceiling, time_budget_ms, shots)
    timings = outcome.solution
    solver_method = outcome.method
    used_oracle = outcome.used_oracle

    final_risk = check_timing_collisions(constraints, current_positions, targets, valid, timings)

    if not final_risk.is_safe and outcome.used_oracle:
        fallback = problem.greedy()
        fallback_risk = check_timing_collisions(
            constraints, current_positions, targets, valid, fallback
        )
        if fallback_risk.is_safe:
            logger.info("Oracle schedule unsafe, greedy sequential schedule verified safe")
            timings = fallback
            final_risk = fallback_risk
            solver_method = "Greedy sequential (oracle schedule failed verification)"
            used_oracle = False

    if final_risk.is_safe:
        min_separation = final_risk.min_separation
    else:
        logger.warning(f"Staggered schedule still unsafe: {final_risk.describe()}")
        min_separation = 0.0

    k = constraints.delay_steps
    max_delay = max((timing_window(step, k)[0] for step in timings.values()), default=0.0)

    return CollisionFreePlan(
        paths=_staggered_paths(current_positions, targets, valid, timings, k),
        original_assignments=dict(valid),
        total_distance=distance_total,
        min_achieved_separation=min_separation,
        max_delay=max_delay,
        method=METHOD_STAGGERED,
        solver_method=solver_method,
        used_oracle=used_oracle,
        timings=dict(timings),
    )


def ensure_safe_transition(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    current_positions: Sequence[Position3D],
    target_formation: Formation,
    assignment: Dict[int, int]
) -> CollisionFreePlan:
    """plan_transition with default constraints."""
    return plan_transition(
        oracle, shots, current_positions, target_formation, assignment, DEFAULT_CONSTRAINTS
    )


def describe_risk(risk: CollisionRisk) -> str:
    """Pretty print a collision risk for diagnostics."""
    return risk.describe()
