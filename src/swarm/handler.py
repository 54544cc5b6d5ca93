"""
Swarm event handling: turn vehicle notifications into state changes and
ground station commands.
"""

import time
import logging
from typing import Any, Dict, List, Tuple
from dataclasses import dataclass

from .events import (
    DurationKind,
    EventKind,
    DroneCommand,
    DroneEvent,
    SwarmCommand,
    SwarmNotification,
    MOTOR_DEPARTURE_SEVERITY,
    MOTOR_URGENT_SEVERITY,
    causes_formation_departure,
    is_urgent,
    suggested_duration,
)
from .state import Lifecycle, SwarmState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventHandlerConfig:
    """
    Event handling settings.

    Attributes:
        max_hold_time_seconds: Longest departure the rest of the swarm waits for
        max_compute_time_ms: Compute budget for replanning
        use_oracle: Whether replanning may call the oracle
        oracle_shots: Oracle samples per replan
        motor_departure_severity: Motor warning severity above which a vehicle departs
        motor_urgent_severity: Motor warning severity above which a report is urgent
    """
    max_hold_time_seconds: float = 30.0
    max_compute_time_ms: float = 5000.0
    use_oracle: bool = True
    oracle_shots: int = 1000
    motor_departure_severity: float = MOTOR_DEPARTURE_SEVERITY
    motor_urgent_severity: float = MOTOR_URGENT_SEVERITY

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'EventHandlerConfig':
        """Build from the 'swarm' section of a loaded config."""
        swarm = config.get('swarm', {})
        defaults = cls()
        return cls(
            max_hold_time_seconds=float(swarm.get('max_hold_time_seconds', defaults.max_hold_time_seconds)),
            max_compute_time_ms=float(swarm.get('max_compute_time_ms', defaults.max_compute_time_ms)),
            use_oracle=bool(swarm.get('use_oracle', defaults.use_oracle)),
            oracle_shots=int(swarm.get('oracle_shots', defaults.oracle_shots)),
            motor_departure_severity=float(
                swarm.get('motor_departure_severity', defaults.motor_departure_severity)
            ),
            motor_urgent_severity=float(
                swarm.get('motor_urgent_severity', defaults.motor_urgent_severity)
            ),
        )


DEFAULT_HANDLER_CONFIG = EventHandlerConfig()


def _is_rejoin(event) -> bool:
    return isinstance(event, DroneEvent) and event.kind == EventKind.READY_TO_REJOIN


def handle_notification(
    config: EventHandlerConfig,
    state: SwarmState,
    notification: SwarmNotification
) -> Tuple[SwarmState, List[SwarmCommand]]:
    """
    Apply one vehicle notification.

    A departure event marks the vehicle Departed. If it will be back within
    max_hold_time_seconds the other formation vehicles are told to hold for
    that long; otherwise the swarm carries on and the next replan works
    around the reduced roster. A rejoin request marks a departed vehicle
    Returning. Every notification updates the reporter's position.

    Returns:
        (new state, commands to send)
    """
    drone_id = notification.drone_id
    event = notification.event
    now = time.time()

    state = state.with_position(drone_id, notification.position)

    if is_urgent(event, config.motor_urgent_severity):
        logger.warning(f"Urgent event from vehicle {drone_id}: {event}")

    if causes_formation_departure(event, config.motor_departure_severity):
        departed = state.transition(drone_id, Lifecycle.DEPARTED, event, now)
        if departed is state:
            # Rejected, e.g. a repeat report from a vehicle already Departed
            return state, []
        state = departed

        duration = suggested_duration(event)
        short = duration.kind in (DurationKind.MOMENTARY, DurationKind.BRIEF)
        if short and duration.seconds < config.max_hold_time_seconds:
            others = [d for d in state.active_vehicles() if d != drone_id]
            for other in others:
                if state.lifecycle(other) == Lifecycle.ACTIVE:
                    state = state.transition(other, Lifecycle.HOLDING)
            logger.info(f"Vehicle {drone_id} departing briefly, holding {others} for {duration.seconds}s")
            hold = SwarmCommand(tuple(others), DroneCommand.hold(duration.seconds))
            return state.with_holding(True, now), [hold]

        logger.info(f"Vehicle {drone_id} departed, formation continues without it")
        return state, []

    if _is_rejoin(event):
        return state.transition(drone_id, Lifecycle.RETURNING), []

    return state, []


def resume_swarm(state: SwarmState) -> Tuple[SwarmState, List[SwarmCommand]]:
    """End a hold: Holding vehicles become Active and a Resume is broadcast."""
    for drone_id in state.holding_vehicles():
        state = state.transition(drone_id, Lifecycle.ACTIVE)
    return state.with_holding(False), [SwarmCommand(None, DroneCommand.resume())]
