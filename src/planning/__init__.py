"""
Formation transition planning.
Provides slot assignment, collision checking and staggered timing for swarm choreography.
"""

from .types import (
    Position3D,
    Formation,
    Waypoint,
    DronePath,
    CollisionRisk,
    RiskKind,
    PlanningConstraints,
    CollisionFreePlan,
    with_separation,
    with_delay_steps,
    with_max_velocity,
    with_samples,
)
from .oracle import CombinatorialOracle, LocalSamplingOracle, OracleError
from .solver import AssignmentProblem, TimingProblem, SolveOutcome, solve, solve_assignment
from .collision import detect_collisions, check_timing_collisions, plan_transition
from .config import load_config, constraints_from_config

__all__ = [
    'Position3D',
    'Formation',
    'Waypoint',
    'DronePath',
    'CollisionRisk',
    'RiskKind',
    'PlanningConstraints',
    'CollisionFreePlan',
    'with_separation',
    'with_delay_steps',
    'with_max_velocity',
    'with_samples',
    'CombinatorialOracle',
    'LocalSamplingOracle',
    'OracleError',
    'AssignmentProblem',
    'TimingProblem',
    'SolveOutcome',
    'solve',
    'solve_assignment',
    'detect_collisions',
    'check_timing_collisions',
    'plan_transition',
    'load_config',
    'constraints_from_config',
]
