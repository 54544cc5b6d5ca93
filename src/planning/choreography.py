"""
Drone Show Choreography

Runs a sequence of formations for a small swarm: each transition is an
assignment problem (which vehicle takes which slot) followed by collision
planning of the resulting paths. The default show flies four vehicles
Ground -> Diamond -> Square -> Vertical -> Ground.
"""

import argparse
import logging
import time
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass, replace

import numpy as np
from scipy.optimize import linear_sum_assignment

from .types import Position3D, Formation, PlanningConstraints, CollisionFreePlan
from .qubo import build_distance_matrix
from .oracle import CombinatorialOracle, LocalSamplingOracle
from .solver import AssignmentProblem, solve, MAX_ORACLE_VARIABLES, DEFAULT_TIME_BUDGET_MS
from .collision import plan_transition
from .config import load_config, constraints_from_config

logger = logging.getLogger(__name__)


GROUND = Formation("Ground (Line)", (
    Position3D(-6.0, 0.0, 0.0),
    Position3D(-2.0, 0.0, 0.0),
    Position3D(2.0, 0.0, 0.0),
    Position3D(6.0, 0.0, 0.0),
))

#       0
#     1   2
#       3
DIAMOND = Formation("Diamond", (
    Position3D(0.0, 0.0, 25.0),
    Position3D(-8.0, 0.0, 15.0),
    Position3D(8.0, 0.0, 15.0),
    Position3D(0.0, 0.0, 5.0),
))

SQUARE = Formation("Square", (
    Position3D(-5.0, 0.0, 20.0),
    Position3D(5.0, 0.0, 20.0),
    Position3D(-5.0, 0.0, 10.0),
    Position3D(5.0, 0.0, 10.0),
))

VERTICAL = Formation("Vertical Line", (
    Position3D(0.0, 0.0, 30.0),
    Position3D(0.0, 0.0, 22.0),
    Position3D(0.0, 0.0, 14.0),
    Position3D(0.0, 0.0, 6.0),
))

DEFAULT_SHOW = (GROUND, DIAMOND, SQUARE, VERTICAL, GROUND)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one formation transition."""
    from_formation: str
    to_formation: str
    assignments: Dict[int, int]
    total_distance: float
    optimal_distance: float
    method: str
    used_oracle: bool
    plan: Optional[CollisionFreePlan] = None

    @property
    def optimality_gap(self) -> float:
        """Extra distance flown relative to the optimal assignment."""
        return self.total_distance - self.optimal_distance

    def to_dict(self) -> dict:
        """Summary dictionary (without the paths)."""
        return {
            'from_formation': self.from_formation,
            'to_formation': self.to_formation,
            'assignments': dict(self.assignments),
            'total_distance': self.total_distance,
            'optimal_distance': self.optimal_distance,
            'optimality_gap': self.optimality_gap,
            'method': self.method,
            'used_oracle': self.used_oracle,
            'collision_method': self.plan.method if self.plan else None,
            'min_separation': self.plan.min_achieved_separation if self.plan else None,
        }


@dataclass(frozen=True)
class ShowSummary:
    """Outcome of a whole show."""
    transitions: List[TransitionResult]
    elapsed_ms: float

    @property
    def total_distance(self) -> float:
        return sum(t.total_distance for t in self.transitions)

    @property
    def oracle_solved(self) -> int:
        return sum(1 for t in self.transitions if t.used_oracle)

    def to_dict(self) -> dict:
        return {
            'num_transitions': len(self.transitions),
            'total_distance': self.total_distance,
            'oracle_solved': self.oracle_solved,
            'fallback_used': len(self.transitions) - self.oracle_solved,
            'elapsed_ms': self.elapsed_ms,
            'transitions': [t.to_dict() for t in self.transitions],
        }


def optimal_distance(distance_matrix: np.ndarray) -> float:
    """Exact minimum total distance (Hungarian method) for reference."""
    if distance_matrix.size == 0:
        return 0.0
    rows, cols = linear_sum_assignment(distance_matrix)
    return float(distance_matrix[rows, cols].sum())


def solve_transition(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    current_positions: Sequence[Position3D],
    from_name: str,
    formation: Formation,
    variable_ceiling: int = MAX_ORACLE_VARIABLES,
    time_budget_ms: float = DEFAULT_TIME_BUDGET_MS
) -> TransitionResult:
    """
    Assign vehicles 0..n-1 to the slots of a formation.

    Args:
        oracle: Optimization backend (None = greedy only)
        shots: Oracle samples
        current_positions: Current position per vehicle id
        from_name: Name of the formation being left
        formation: Target formation

    Returns:
        TransitionResult without a collision plan
    """
    distances = build_distance_matrix(current_positions, formation.positions)
    problem = AssignmentProblem(distances)
    outcome = solve(problem, oracle, variable_ceiling, time_budget_ms, shots)

    return TransitionResult(
        from_formation=from_name,
        to_formation=formation.name,
        assignments=outcome.solution,
        total_distance=problem.cost(outcome.solution),
        optimal_distance=optimal_distance(distances),
        method=outcome.method,
        used_oracle=outcome.used_oracle,
    )


def run_show(
    oracle: Optional[CombinatorialOracle],
    shots: int,
    formations: Sequence[Formation] = DEFAULT_SHOW,
    constraints: PlanningConstraints = PlanningConstraints(),
    variable_ceiling: int = MAX_ORACLE_VARIABLES,
    time_budget_ms: float = DEFAULT_TIME_BUDGET_MS
) -> ShowSummary:
    """
    Fly a sequence of formations starting from the first one.

    Returns:
        ShowSummary with one TransitionResult per consecutive pair
    """
    start = time.perf_counter()
    transitions: List[TransitionResult] = []
    if not formations:
        return ShowSummary(transitions, 0.0)

    current = list(formations[0].positions)

    for previous, formation in zip(formations, formations[1:]):
        logger.info(f"Transition: {previous.name} -> {formation.name}")
        result = solve_transition(
            oracle, shots, current, previous.name, formation, variable_ceiling, time_budget_ms
        )
        plan = plan_transition(
            oracle, shots, current, formation, result.assignments, constraints,
            variable_ceiling, time_budget_ms
        )
        result = replace(result, plan=plan)
        transitions.append(result)

        logger.info(
            f"  {result.method}: {result.total_distance:.2f}m "
            f"(optimal {result.optimal_distance:.2f}m), {plan.method}"
        )

        # Vehicles without a slot stay where they are
        current = [
            formation.positions[result.assignments[d]] if d in result.assignments else pos
            for d, pos in enumerate(current)
        ]

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    return ShowSummary(transitions, elapsed_ms)


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point: plan the default four-vehicle show."""
    parser = argparse.ArgumentParser(description="Plan a drone show formation sequence")
    parser.add_argument('--config', default=None, help="Path to choreography YAML config")
    parser.add_argument('--shots', type=int, default=None, help="Oracle samples per solve")
    parser.add_argument('--seed', type=int, default=None, help="Sampler random seed")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = load_config(args.config)
    solver_config = config['solver']
    shots = args.shots if args.shots is not None else int(solver_config['shots'])
    seed = args.seed if args.seed is not None else solver_config.get('seed')
    max_vars = int(solver_config['max_oracle_variables'])

    oracle = LocalSamplingOracle(max_variables=max_vars, seed=seed)
    summary = run_show(
        oracle,
        shots,
        DEFAULT_SHOW,
        constraints_from_config(config),
        variable_ceiling=max_vars,
        time_budget_ms=float(solver_config['time_budget_ms'])
    )

    for i, transition in enumerate(summary.transitions, start=1):
        print(
            f"{i}. {transition.from_formation} -> {transition.to_formation}: "
            f"{transition.total_distance:.2f}m [{transition.method}] "
            f"{transition.plan.method if transition.plan else ''}"
        )
    print(
        f"Total distance: {summary.total_distance:.2f}m, "
        f"oracle solved {summary.oracle_solved}/{len(summary.transitions)}, "
        f"{summary.elapsed_ms:.0f}ms"
    )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
