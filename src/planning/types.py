"""
Shared data types for formation transition planning.

Positions, formations, per-vehicle paths, collision risk results and the
planning constraints used by the geometry, encoder and collision modules.
All types are immutable values; "modifying" one produces a new instance.
"""

import numpy as np
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field, replace
from enum import Enum


@dataclass(frozen=True)
class Position3D:
    """3D position in meters relative to the ground origin."""
    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        """Return position as a numpy vector."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def as_tuple(self) -> Tuple[float, float, float]:
        """Return position as tuple."""
        return (self.x, self.y, self.z)

    @classmethod
    def from_iterable(cls, values: Iterable[float]) -> 'Position3D':
        """Create from any (x, y, z) sequence or array."""
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)


ORIGIN = Position3D(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Formation:
    """A named, ordered set of target slots for one choreography step."""
    name: str
    positions: Tuple[Position3D, ...]

    def __post_init__(self):
        # Accept lists at construction, store a tuple
        object.__setattr__(self, 'positions', tuple(self.positions))

    def __len__(self) -> int:
        return len(self.positions)


@dataclass(frozen=True)
class Waypoint:
    """
    One point of a transition path.

    Attributes:
        position: Target position
        arrival_time: Normalized arrival time (0.0 to 1.0)
        dwell_time: Normalized time to wait here before moving on
    """
    position: Position3D
    arrival_time: float
    dwell_time: float = 0.0


@dataclass(frozen=True)
class DronePath:
    """Complete transition path for one vehicle."""
    drone_id: int
    waypoints: Tuple[Waypoint, ...]

    @property
    def start_delay(self) -> float:
        """Normalized delay before the vehicle leaves its start position."""
        if not self.waypoints:
            return 0.0
        return self.waypoints[0].dwell_time


class RiskKind(Enum):
    """Tags of a collision detection result."""
    SAFE = "safe"
    POTENTIAL_COLLISION = "potential_collision"
    MULTIPLE_COLLISIONS = "multiple_collisions"


@dataclass(frozen=True)
class CollisionRisk:
    """
    Result of a collision check.

    SAFE carries the minimum separation achieved; POTENTIAL_COLLISION carries
    the vehicle pair, the normalized time and the distance at closest
    approach; MULTIPLE_COLLISIONS carries the individual risks.
    """
    kind: RiskKind
    min_separation: float = 0.0
    drone_a: int = -1
    drone_b: int = -1
    time: float = 0.0
    distance: float = 0.0
    risks: Tuple['CollisionRisk', ...] = ()

    @classmethod
    def safe(cls, min_separation: float) -> 'CollisionRisk':
        """No pair closer than the minimum; min_separation is the closest approach."""
        return cls(RiskKind.SAFE, min_separation=min_separation)

    @classmethod
    def collision(cls, drone_a: int, drone_b: int, time: float, distance: float) -> 'CollisionRisk':
        """
        One pair too close.

        Args:
            drone_a: Lower vehicle id of the pair
            drone_b: Other vehicle id
            time: Normalized time of closest approach
            distance: Separation at that time
        """
        return cls(
            RiskKind.POTENTIAL_COLLISION,
            drone_a=drone_a,
            drone_b=drone_b,
            time=time,
            distance=distance
        )

    @classmethod
    def multiple(cls, risks: Sequence['CollisionRisk']) -> 'CollisionRisk':
        """Several pairs too close, in detection order."""
        return cls(RiskKind.MULTIPLE_COLLISIONS, risks=tuple(risks))

    @classmethod
    def from_collisions(cls, collisions: List['CollisionRisk'], min_separation: float) -> 'CollisionRisk':
        """Collapse a list of pair collisions into a single result."""
        if not collisions:
            return cls.safe(min_separation)
        if len(collisions) == 1:
            return collisions[0]
        return cls.multiple(collisions)

    @property
    def is_safe(self) -> bool:
        """True if no pair violates the minimum separation."""
        return self.kind == RiskKind.SAFE

    def describe(self) -> str:
        """Human readable summary for diagnostics."""
        if self.kind == RiskKind.SAFE:
            return f"Safe: minimum separation {self.min_separation:.2f}m"
        if self.kind == RiskKind.POTENTIAL_COLLISION:
            return (
                f"Collision risk: Drone {self.drone_a} and Drone {self.drone_b} "
                f"at t={self.time:.2f} (distance: {self.distance:.2f}m)"
            )
        return f"Multiple collision risks ({len(self.risks)} detected)"


@dataclass(frozen=True)
class PlanningConstraints:
    """
    Immutable planning configuration.

    Attributes:
        min_separation_meters: Minimum allowed distance between vehicles
        max_velocity_ms: Maximum velocity used for timing estimates
        delay_steps: Number of discrete start delays (at least 2)
        samples_per_path: Geometric samples along each path motion
    """
    min_separation_meters: float = 2.0
    max_velocity_ms: float = 5.0
    delay_steps: int = 4
    samples_per_path: int = 20

    def __post_init__(self):
        if self.delay_steps < 2:
            object.__setattr__(self, 'delay_steps', 2)


DEFAULT_CONSTRAINTS = PlanningConstraints()


def with_separation(constraints: PlanningConstraints, meters: float) -> PlanningConstraints:
    """Set minimum separation distance between vehicles."""
    return replace(constraints, min_separation_meters=meters)


def with_delay_steps(constraints: PlanningConstraints, steps: int) -> PlanningConstraints:
    """Set number of delay steps (more = finer control, more variables)."""
    return replace(constraints, delay_steps=max(2, steps))


def with_max_velocity(constraints: PlanningConstraints, velocity: float) -> PlanningConstraints:
    """Set maximum velocity for time calculations."""
    return replace(constraints, max_velocity_ms=velocity)


def with_samples(constraints: PlanningConstraints, samples: int) -> PlanningConstraints:
    """Set path sampling resolution."""
    return replace(constraints, samples_per_path=max(5, samples))


@dataclass(frozen=True)
class CollisionFreePlan:
    """Result of planning one formation transition."""
    paths: Tuple[DronePath, ...]
    original_assignments: Dict[int, int]
    total_distance: float
    min_achieved_separation: float
    max_delay: float
    method: str
    solver_method: str = ""
    used_oracle: bool = False
    timings: Dict[int, int] = field(default_factory=dict)

    def path_for(self, drone_id: int) -> Optional[DronePath]:
        for path in self.paths:
            if path.drone_id == drone_id:
                return path
        return None


# Assignment helpers. An assignment is a plain dict: vehicle id -> slot index.

def is_valid_assignment(assignment: Dict[int, int], vehicle_ids: Iterable[int]) -> bool:
    """
    Check an assignment is a bijection over the given vehicles.

    Every vehicle must appear exactly once and no slot may be used twice.
    """
    expected = set(vehicle_ids)
    if set(assignment.keys()) != expected:
        return False
    slots = list(assignment.values())
    return len(slots) == len(set(slots))


def filter_assignment(
    assignment: Dict[int, int],
    num_vehicles: int,
    num_slots: int
) -> Dict[int, int]:
    """Drop pairs whose vehicle or slot index is out of range."""
    return {
        drone_id: slot
        for drone_id, slot in assignment.items()
        if 0 <= drone_id < num_vehicles and 0 <= slot < num_slots
    }
