"""
Swarm event and command model.

Vehicles self-report events (battery, points of interest, hardware faults)
and the ground station answers with commands. Standard events form a closed
set (EventKind) with a fixed payload schema each; anything else travels as a
CustomEvent with a string tag and a key/value payload.
"""

import math
import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union
from dataclasses import dataclass, field

from planning.types import Position3D


class DurationKind(Enum):
    """How long handling an event is expected to take"""
    MOMENTARY = "momentary"  # others hover and wait (< 10 s)
    BRIEF = "brief"          # others loiter (10-60 s)
    EXTENDED = "extended"    # unknown or long, swarm continues without the vehicle


@dataclass(frozen=True)
class EventDuration:
    """
    Duration estimate for handling an event.

    Momentary and brief durations carry a finite, non-negative number of
    seconds; extended durations carry none.

    Raises:
        ValueError: If a momentary or brief duration has no usable seconds
    """
    kind: DurationKind
    seconds: Optional[float] = None

    def __post_init__(self):
        if self.kind == DurationKind.EXTENDED:
            object.__setattr__(self, 'seconds', None)
            return
        if self.seconds is None:
            raise ValueError(f"{self.kind.value} duration requires seconds")
        seconds = float(self.seconds)
        if not math.isfinite(seconds) or seconds < 0.0:
            raise ValueError(f"Invalid {self.kind.value} duration: {self.seconds}")
        object.__setattr__(self, 'seconds', seconds)

    @classmethod
    def momentary(cls, seconds: float) -> 'EventDuration':
        return cls(DurationKind.MOMENTARY, float(seconds))

    @classmethod
    def brief(cls, seconds: float) -> 'EventDuration':
        return cls(DurationKind.BRIEF, float(seconds))

    @property
    def is_short(self) -> bool:
        """True if the rest of the swarm can reasonably wait."""
        if self.kind == DurationKind.MOMENTARY:
            return True
        if self.kind == DurationKind.BRIEF:
            return self.seconds < 30.0
        return False

    @property
    def estimated_seconds(self) -> float:
        """Expected seconds, infinite for an extended duration."""
        if self.kind == DurationKind.EXTENDED:
            return math.inf
        return self.seconds


EXTENDED = EventDuration(DurationKind.EXTENDED)


class EventKind(Enum):
    """
    Standard vehicle events.

    Each member carries its wire code and payload schema: a tuple of
    (field name, field type) or (field name, field type, default).
    """
    # Battery/power
    LOW_BATTERY = ("BAT_LOW", (("percent", float),))
    CRITICAL_BATTERY = ("BAT_CRIT", (("percent", float),))
    RECHARGE_COMPLETE = ("RECHARGED", ())

    # Navigation/safety
    OBSTACLE_DETECTED = ("OBSTACLE", (("direction", float), ("distance", float)))
    GPS_LOST = ("GPS_LOST", ())
    GPS_RECOVERED = ("GPS_OK", ())
    RETURN_TO_HOME = ("RTH", ())

    # Mission/payload
    POINT_OF_INTEREST = ("POI", (("position", Position3D), ("confidence", float, 1.0)))
    ITEM_READY_TO_DROP = ("DROP_RDY", ())
    ITEM_DROPPED = ("DROPPED", (("success", bool),))
    PAYLOAD_PICKED_UP = ("PICKED", ())

    # Interaction
    PERSON_RECOGNIZED = ("PERSON", (("person_id", str), ("position", Position3D)))
    GESTURE_DETECTED = ("GESTURE", (("gesture", str),))
    FOLLOW_ME_REQUESTED = ("FOLLOW", (("target_id", str),))

    # Environment
    HIGH_WIND = ("WIND", (("speed_ms", float),))
    TEMPERATURE_WARNING = ("TEMP", (("celsius", float),))
    RAIN_DETECTED = ("RAIN", ())

    # Hardware
    MOTOR_WARNING = ("MOTOR", (("motor_index", int), ("severity", float)))
    SENSOR_FAULT = ("SENSOR", (("sensor_name", str),))
    COMMUNICATION_DEGRADED = ("COMM", (("signal_strength", float),))

    # Formation
    READY_TO_REJOIN = ("REJOIN", ())
    FORMATION_POSITION_REACHED = ("POS_OK", ())
    COLLISION_RISK = ("COLLISION", (("other_drone_id", int), ("distance", float)))

    def __init__(self, code: str, fields: tuple):
        self.code = code
        self.fields = fields

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f[0] for f in self.fields)

    @classmethod
    def from_code(cls, code: str) -> Optional['EventKind']:
        """Kind with the given wire code, or None."""
        for kind in cls:
            if kind.code == code:
                return kind
        return None


@dataclass(frozen=True)
class DroneEvent:
    """
    A standard event: its kind plus payload values in schema order.

    Use the constructors (DroneEvent.low_battery(18.0), ...) or
    DroneEvent.of(kind, *values), which coerces values to the schema types.
    """
    kind: EventKind
    values: Tuple[Any, ...] = ()

    @classmethod
    def of(cls, kind: EventKind, *values) -> 'DroneEvent':
        """
        Build an event, filling defaults and coercing values to the schema.

        Raises:
            ValueError: If there are too many values or a required one is missing
        """
        if len(values) > len(kind.fields):
            raise ValueError(f"{kind.name} takes at most {len(kind.fields)} values")
        coerced = []
        for i, schema in enumerate(kind.fields):
            if i < len(values):
                value = values[i]
            elif len(schema) > 2:
                value = schema[2]
            else:
                raise ValueError(f"{kind.name} requires field '{schema[0]}'")
            coerced.append(_coerce(schema[1], value))
        return cls(kind, tuple(coerced))

    @property
    def payload(self) -> Dict[str, Any]:
        """Payload values keyed by field name."""
        return dict(zip(self.kind.field_names, self.values))

    # Constructors for the common events

    @classmethod
    def low_battery(cls, percent: float) -> 'DroneEvent':
        return cls.of(EventKind.LOW_BATTERY, percent)

    @classmethod
    def critical_battery(cls, percent: float) -> 'DroneEvent':
        return cls.of(EventKind.CRITICAL_BATTERY, percent)

    @classmethod
    def point_of_interest(cls, position: Position3D, confidence: float = 1.0) -> 'DroneEvent':
        return cls.of(EventKind.POINT_OF_INTEREST, position, confidence)

    @classmethod
    def person_recognized(cls, person_id: str, position: Position3D) -> 'DroneEvent':
        return cls.of(EventKind.PERSON_RECOGNIZED, person_id, position)

    @classmethod
    def motor_warning(cls, motor_index: int, severity: float) -> 'DroneEvent':
        return cls.of(EventKind.MOTOR_WARNING, motor_index, severity)

    @classmethod
    def collision_risk(cls, other_drone_id: int, distance: float) -> 'DroneEvent':
        return cls.of(EventKind.COLLISION_RISK, other_drone_id, distance)

    @classmethod
    def ready_to_rejoin(cls) -> 'DroneEvent':
        return cls(EventKind.READY_TO_REJOIN)


def _coerce(field_type, value):
    if field_type is Position3D:
        return value if isinstance(value, Position3D) else Position3D.from_iterable(value)
    if field_type is bool:
        return bool(value)
    if field_type is int:
        return int(value)
    if field_type is float:
        return float(value)
    return str(value)


@dataclass(frozen=True)
class CustomEvent:
    """Domain-specific event outside the standard set."""
    event_type: str
    payload: Dict[str, str] = field(default_factory=dict)
    suggested_duration: EventDuration = EXTENDED


AnyEvent = Union[DroneEvent, CustomEvent]


_SUGGESTED_DURATIONS = {
    EventKind.ITEM_DROPPED: EventDuration.momentary(2.0),
    EventKind.FORMATION_POSITION_REACHED: EventDuration.momentary(1.0),
    EventKind.GPS_RECOVERED: EventDuration.momentary(1.0),
    EventKind.RECHARGE_COMPLETE: EventDuration.momentary(5.0),
    EventKind.READY_TO_REJOIN: EventDuration.momentary(1.0),

    EventKind.POINT_OF_INTEREST: EventDuration.brief(15.0),
    EventKind.PERSON_RECOGNIZED: EventDuration.brief(20.0),
    EventKind.GESTURE_DETECTED: EventDuration.brief(10.0),
    EventKind.ITEM_READY_TO_DROP: EventDuration.brief(5.0),
    EventKind.PAYLOAD_PICKED_UP: EventDuration.brief(10.0),
    EventKind.OBSTACLE_DETECTED: EventDuration.brief(5.0),
    EventKind.COLLISION_RISK: EventDuration.brief(3.0),
}

_DEPARTURE_KINDS = frozenset({
    EventKind.LOW_BATTERY,
    EventKind.CRITICAL_BATTERY,
    EventKind.RETURN_TO_HOME,
    EventKind.POINT_OF_INTEREST,
    EventKind.FOLLOW_ME_REQUESTED,
    EventKind.HIGH_WIND,
    EventKind.SENSOR_FAULT,
})

_URGENT_KINDS = frozenset({
    EventKind.CRITICAL_BATTERY,
    EventKind.GPS_LOST,
    EventKind.COLLISION_RISK,
})

MOTOR_DEPARTURE_SEVERITY = 0.5
MOTOR_URGENT_SEVERITY = 0.7


def suggested_duration(event: AnyEvent) -> EventDuration:
    """Expected handling time of an event (Extended unless listed)."""
    if isinstance(event, CustomEvent):
        return event.suggested_duration
    return _SUGGESTED_DURATIONS.get(event.kind, EXTENDED)


def is_urgent(event: AnyEvent, motor_severity: float = MOTOR_URGENT_SEVERITY) -> bool:
    """True if the swarm must be notified immediately."""
    if isinstance(event, CustomEvent):
        return False
    if event.kind == EventKind.MOTOR_WARNING:
        return event.payload['severity'] > motor_severity
    return event.kind in _URGENT_KINDS


def causes_formation_departure(
    event: AnyEvent,
    motor_severity: float = MOTOR_DEPARTURE_SEVERITY
) -> bool:
    """True if the reporting vehicle will leave its formation slot."""
    if isinstance(event, CustomEvent):
        return False
    if event.kind == EventKind.MOTOR_WARNING:
        return event.payload['severity'] > motor_severity
    return event.kind in _DEPARTURE_KINDS


@dataclass(frozen=True)
class DroneProfile:
    """Per vehicle type thresholds and capabilities."""
    drone_type: str
    battery_low_threshold: float       # percent, advisory
    battery_critical_threshold: float  # percent, mandatory return
    max_wind_tolerance: float          # m/s
    min_operating_temp: float          # Celsius
    max_operating_temp: float
    has_camera: bool
    has_drop_mechanism: bool
    has_lights: bool
    can_auto_recharge: bool
    max_payload_grams: float

    def battery_event(self, percent: float) -> Optional[DroneEvent]:
        """Event a vehicle of this type raises at the given battery level."""
        if percent <= self.battery_critical_threshold:
            return DroneEvent.critical_battery(percent)
        if percent <= self.battery_low_threshold:
            return DroneEvent.low_battery(percent)
        return None

    def environment_event(self, wind_ms: float, celsius: float) -> Optional[DroneEvent]:
        """Event raised when wind or temperature leave the operating envelope."""
        if wind_ms > self.max_wind_tolerance:
            return DroneEvent.of(EventKind.HIGH_WIND, wind_ms)
        if not self.min_operating_temp <= celsius <= self.max_operating_temp:
            return DroneEvent.of(EventKind.TEMPERATURE_WARNING, celsius)
        return None


CRAZYFLIE = DroneProfile(
    drone_type="Crazyflie",
    battery_low_threshold=20.0,
    battery_critical_threshold=10.0,
    max_wind_tolerance=5.0,
    min_operating_temp=0.0,
    max_operating_temp=40.0,
    has_camera=False,
    has_drop_mechanism=False,
    has_lights=True,
    can_auto_recharge=True,
    max_payload_grams=15.0,
)

STANDARD = DroneProfile(
    drone_type="Standard",
    battery_low_threshold=25.0,
    battery_critical_threshold=15.0,
    max_wind_tolerance=12.0,
    min_operating_temp=-10.0,
    max_operating_temp=45.0,
    has_camera=True,
    has_drop_mechanism=False,
    has_lights=True,
    can_auto_recharge=False,
    max_payload_grams=500.0,
)

HEAVY_LIFTER = DroneProfile(
    drone_type="HeavyLifter",
    battery_low_threshold=30.0,
    battery_critical_threshold=20.0,
    max_wind_tolerance=8.0,
    min_operating_temp=-5.0,
    max_operating_temp=40.0,
    has_camera=True,
    has_drop_mechanism=True,
    has_lights=True,
    can_auto_recharge=False,
    max_payload_grams=2000.0,
)

SCOUT = DroneProfile(
    drone_type="Scout",
    battery_low_threshold=15.0,
    battery_critical_threshold=8.0,
    max_wind_tolerance=15.0,
    min_operating_temp=-15.0,
    max_operating_temp=50.0,
    has_camera=True,
    has_drop_mechanism=False,
    has_lights=False,
    can_auto_recharge=False,
    max_payload_grams=100.0,
)


class MessagePriority(Enum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class CommandKind(Enum):
    """Ground station commands with their wire codes"""
    HOLD = "HOLD"
    RESUME = "RESUME"
    GOTO = "GOTO"
    LAND = "LAND"
    RETURN_HOME = "RTH"
    SET_SPEED = "SPEED"
    CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class DroneCommand:
    """
    A command payload.

    Attributes:
        kind: Command kind
        value: Hold seconds, GoTo position or speed (m/s), depending on kind
        name: Custom command name
        parameters: Custom command parameters
    """
    kind: CommandKind
    value: Union[float, Position3D, None] = None
    name: str = ""
    parameters: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def hold(cls, seconds: float) -> 'DroneCommand':
        return cls(CommandKind.HOLD, float(seconds))

    @classmethod
    def resume(cls) -> 'DroneCommand':
        return cls(CommandKind.RESUME)

    @classmethod
    def goto(cls, position: Position3D) -> 'DroneCommand':
        return cls(CommandKind.GOTO, position)

    @classmethod
    def land(cls) -> 'DroneCommand':
        return cls(CommandKind.LAND)

    @classmethod
    def return_home(cls) -> 'DroneCommand':
        return cls(CommandKind.RETURN_HOME)

    @classmethod
    def set_speed(cls, meters_per_second: float) -> 'DroneCommand':
        return cls(CommandKind.SET_SPEED, float(meters_per_second))

    @classmethod
    def custom(cls, name: str, parameters: Optional[Dict[str, str]] = None) -> 'DroneCommand':
        return cls(CommandKind.CUSTOM, None, name, dict(parameters or {}))


@dataclass(frozen=True)
class SwarmNotification:
    """
    Event reported by a vehicle (relayed by the ground station).

    timestamp and priority are local metadata: they are not sent on the
    wire and do not take part in equality.
    """
    drone_id: int
    event: AnyEvent
    position: Position3D
    timestamp: float = field(default_factory=time.time, compare=False)
    priority: MessagePriority = field(default=MessagePriority.NORMAL, compare=False)

    @classmethod
    def create(cls, drone_id: int, event: AnyEvent, position: Position3D) -> 'SwarmNotification':
        """Notification with priority derived from event urgency."""
        priority = MessagePriority.CRITICAL if is_urgent(event) else MessagePriority.NORMAL
        return cls(drone_id, event, position, priority=priority)


@dataclass(frozen=True)
class SwarmCommand:
    """Command addressed to some vehicles (targets=None broadcasts to all)."""
    targets: Optional[Tuple[int, ...]]
    command: DroneCommand
    timestamp: float = field(default_factory=time.time, compare=False)

    def __post_init__(self):
        if self.targets is not None:
            object.__setattr__(self, 'targets', tuple(self.targets))

    @property
    def is_broadcast(self) -> bool:
        return self.targets is None
