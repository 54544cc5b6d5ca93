"""
Live swarm state.

Tracks each vehicle's lifecycle, last known position and profile. SwarmState
is immutable: every update returns a new state, and lifecycle changes go
through transition(), which rejects moves the lifecycle does not allow.
"""

import time
import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, replace

from planning.types import Position3D, Formation
from .events import AnyEvent, DroneProfile, STANDARD

logger = logging.getLogger(__name__)


class Lifecycle(Enum):
    """Vehicle lifecycle within the swarm"""
    ACTIVE = "active"
    HOLDING = "holding"
    DEPARTED = "departed"
    RETURNING = "returning"
    OFFLINE = "offline"


# Any state may also go OFFLINE
ALLOWED_TRANSITIONS = {
    Lifecycle.ACTIVE: {Lifecycle.HOLDING, Lifecycle.DEPARTED},
    Lifecycle.HOLDING: {Lifecycle.ACTIVE, Lifecycle.DEPARTED},
    Lifecycle.DEPARTED: {Lifecycle.RETURNING},
    Lifecycle.RETURNING: {Lifecycle.ACTIVE, Lifecycle.DEPARTED},
    Lifecycle.OFFLINE: set(),
}


def is_valid_transition(current: Lifecycle, new: Lifecycle) -> bool:
    """True if a vehicle may move from current to new (any live state may go Offline)."""
    if new == Lifecycle.OFFLINE:
        return current != Lifecycle.OFFLINE
    return new in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class VehicleState:
    """
    One vehicle's entry in the swarm state.

    Attributes:
        lifecycle: Current lifecycle tag
        profile: Type-specific thresholds
        position: Last reported position (None until the first report)
        departure_event: Event that made the vehicle depart
        departed_at: Departure timestamp
    """
    lifecycle: Lifecycle
    profile: DroneProfile
    position: Optional[Position3D] = None
    departure_event: Optional[AnyEvent] = None
    departed_at: Optional[float] = None


@dataclass(frozen=True)
class SwarmState:
    """
    Immutable snapshot of the whole swarm.

    Attributes:
        vehicles: Per-vehicle state by id
        current_formation: Formation currently being flown
        formation_queue: Formations still to fly, in order
        is_holding: True while the swarm waits for a departed vehicle
        hold_started_at: Start of the current hold
    """
    vehicles: Dict[int, VehicleState]
    current_formation: Optional[Formation] = None
    formation_queue: Tuple[Formation, ...] = ()
    is_holding: bool = False
    hold_started_at: Optional[float] = None

    @classmethod
    def create(cls, drone_count: int, profiles: Sequence[DroneProfile] = ()) -> 'SwarmState':
        """
        All vehicles Active with unknown positions.

        Vehicles beyond the supplied profiles use the STANDARD profile.
        """
        vehicles = {
            i: VehicleState(Lifecycle.ACTIVE, profiles[i] if i < len(profiles) else STANDARD)
            for i in range(drone_count)
        }
        return cls(vehicles)

    def lifecycle(self, drone_id: int) -> Optional[Lifecycle]:
        """Lifecycle of a vehicle, or None for an unknown id."""
        vehicle = self.vehicles.get(drone_id)
        return vehicle.lifecycle if vehicle else None

    @property
    def positions(self) -> Dict[int, Position3D]:
        """Known positions by vehicle id."""
        return {
            drone_id: v.position
            for drone_id, v in self.vehicles.items()
            if v.position is not None
        }

    def _with_vehicle(self, drone_id: int, vehicle: VehicleState) -> 'SwarmState':
        vehicles = dict(self.vehicles)
        vehicles[drone_id] = vehicle
        return replace(self, vehicles=vehicles)

    def with_position(self, drone_id: int, position: Position3D) -> 'SwarmState':
        """Record a reported position; unknown ids are ignored with a warning."""
        vehicle = self.vehicles.get(drone_id)
        if vehicle is None:
            logger.warning(f"Position report from unknown vehicle {drone_id}")
            return self
        return self._with_vehicle(drone_id, replace(vehicle, position=position))

    def transition(
        self,
        drone_id: int,
        new_lifecycle: Lifecycle,
        event: Optional[AnyEvent] = None,
        now: Optional[float] = None
    ) -> 'SwarmState':
        """
        Move a vehicle to a new lifecycle state.

        Args:
            drone_id: Vehicle id
            new_lifecycle: Target state
            event: Departure reason (used when departing)
            now: Timestamp (default time.time())

        Returns:
            Updated state, or this state unchanged if the move is not allowed
        """
        vehicle = self.vehicles.get(drone_id)
        if vehicle is None:
            logger.warning(f"Transition for unknown vehicle {drone_id}")
            return self

        if not is_valid_transition(vehicle.lifecycle, new_lifecycle):
            logger.warning(
                f"Invalid transition for vehicle {drone_id}: "
                f"{vehicle.lifecycle.value} -> {new_lifecycle.value}"
            )
            return self

        if new_lifecycle == Lifecycle.DEPARTED:
            updated = replace(
                vehicle,
                lifecycle=new_lifecycle,
                departure_event=event,
                departed_at=now if now is not None else time.time()
            )
        elif new_lifecycle in (Lifecycle.ACTIVE, Lifecycle.HOLDING):
            updated = replace(vehicle, lifecycle=new_lifecycle, departure_event=None, departed_at=None)
        else:
            updated = replace(vehicle, lifecycle=new_lifecycle)

        logger.info(f"Vehicle {drone_id}: {vehicle.lifecycle.value} -> {new_lifecycle.value}")
        return self._with_vehicle(drone_id, updated)

    def _ids_in(self, *lifecycles: Lifecycle) -> List[int]:
        return sorted(d for d, v in self.vehicles.items() if v.lifecycle in lifecycles)

    def active_vehicles(self) -> List[int]:
        """Vehicles flying in formation (Active or Holding)."""
        return self._ids_in(Lifecycle.ACTIVE, Lifecycle.HOLDING)

    def holding_vehicles(self) -> List[int]:
        return self._ids_in(Lifecycle.HOLDING)

    def returning_vehicles(self) -> List[int]:
        return self._ids_in(Lifecycle.RETURNING)

    def departed_vehicles(self) -> List[Tuple[int, Optional[AnyEvent], Optional[float]]]:
        """(id, departure event, departure time) for each departed vehicle."""
        return [
            (d, self.vehicles[d].departure_event, self.vehicles[d].departed_at)
            for d in self._ids_in(Lifecycle.DEPARTED)
        ]

    def promote_returning(self) -> 'SwarmState':
        """Make every Returning vehicle Active again."""
        state = self
        for drone_id in self.returning_vehicles():
            state = state.transition(drone_id, Lifecycle.ACTIVE)
        return state

    def with_holding(self, holding: bool, now: Optional[float] = None) -> 'SwarmState':
        """Start (stamping now) or end a swarm-wide hold."""
        if holding:
            return replace(self, is_holding=True, hold_started_at=now if now is not None else time.time())
        return replace(self, is_holding=False, hold_started_at=None)

    def with_formation(self, formation: Formation) -> 'SwarmState':
        return replace(self, current_formation=formation)

    def queue_formations(self, formations: Sequence[Formation]) -> 'SwarmState':
        """Append formations to the queue."""
        return replace(self, formation_queue=self.formation_queue + tuple(formations))

    def advance_formation(self) -> 'SwarmState':
        """Pop the next queued formation into current_formation."""
        if not self.formation_queue:
            return self
        return replace(
            self,
            current_formation=self.formation_queue[0],
            formation_queue=self.formation_queue[1:]
        )
