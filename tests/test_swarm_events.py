"""
Unit tests for swarm event classification and vehicle profiles.
"""

import math
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from planning.types import Position3D
from swarm.events import (
    EXTENDED,
    CRAZYFLIE,
    SCOUT,
    CustomEvent,
    DroneCommand,
    CommandKind,
    DroneEvent,
    DurationKind,
    EventDuration,
    EventKind,
    MessagePriority,
    SwarmCommand,
    SwarmNotification,
    causes_formation_departure,
    is_urgent,
    suggested_duration,
)


class TestEventDuration:
    """Test duration estimates."""

    def test_is_short(self):
        assert EventDuration.momentary(60.0).is_short
        assert EventDuration.brief(20.0).is_short
        assert not EventDuration.brief(45.0).is_short
        assert not EXTENDED.is_short

    def test_estimated_seconds(self):
        assert EventDuration.brief(15.0).estimated_seconds == 15.0
        assert math.isinf(EXTENDED.estimated_seconds)

    @pytest.mark.parametrize("kind", [DurationKind.MOMENTARY, DurationKind.BRIEF])
    @pytest.mark.parametrize("seconds", [None, math.nan, math.inf, -1.0])
    def test_timed_duration_requires_usable_seconds(self, kind, seconds):
        """Test momentary and brief durations reject missing or unusable seconds."""
        with pytest.raises(ValueError):
            EventDuration(kind, seconds)

    def test_seconds_coerced_to_float(self):
        duration = EventDuration(DurationKind.BRIEF, 12)
        assert duration.seconds == 12.0
        assert isinstance(duration.seconds, float)

    def test_extended_carries_no_seconds(self):
        assert EventDuration(DurationKind.EXTENDED, 99.0) == EXTENDED


class TestDroneEvent:
    """Test the standard event model."""

    def test_payload_by_name(self):
        event = DroneEvent.motor_warning(2, 0.8)
        assert event.payload == {'motor_index': 2, 'severity': 0.8}

    def test_values_coerced(self):
        """Test constructor values are coerced to the schema types."""
        event = DroneEvent.low_battery(18)
        assert event.values == (18.0,)
        assert isinstance(event.values[0], float)

    def test_default_field(self):
        event = DroneEvent.of(EventKind.POINT_OF_INTEREST, Position3D(1, 2, 3))
        assert event.payload['confidence'] == 1.0

    def test_missing_field_rejected(self):
        with pytest.raises(ValueError):
            DroneEvent.of(EventKind.MOTOR_WARNING, 1)

    def test_too_many_values_rejected(self):
        with pytest.raises(ValueError):
            DroneEvent.of(EventKind.GPS_LOST, 1)

    def test_codes_unique(self):
        codes = [kind.code for kind in EventKind]
        assert len(codes) == len(set(codes))
        assert EventKind.from_code("BAT_LOW") == EventKind.LOW_BATTERY
        assert EventKind.from_code("NOPE") is None


class TestClassification:
    """Test duration, urgency and departure classification."""

    def test_suggested_durations(self):
        assert suggested_duration(DroneEvent.low_battery(18)) == EXTENDED
        assert suggested_duration(DroneEvent.point_of_interest(Position3D(0, 0, 0))) == EventDuration.brief(15.0)
        assert suggested_duration(DroneEvent.ready_to_rejoin()) == EventDuration.momentary(1.0)
        assert suggested_duration(DroneEvent.of(EventKind.ITEM_DROPPED, True)).kind == DurationKind.MOMENTARY

    def test_custom_duration(self):
        event = CustomEvent("LIGHTS", {"color": "red"}, EventDuration.momentary(3.0))
        assert suggested_duration(event) == EventDuration.momentary(3.0)

    def test_urgency(self):
        assert is_urgent(DroneEvent.critical_battery(5))
        assert is_urgent(DroneEvent.collision_risk(3, 0.5))
        assert not is_urgent(DroneEvent.low_battery(18))
        assert not is_urgent(CustomEvent("ANY"))

    def test_motor_thresholds(self):
        """Test motor warnings depend on severity and configurable thresholds."""
        mild = DroneEvent.motor_warning(0, 0.6)
        severe = DroneEvent.motor_warning(0, 0.9)

        assert causes_formation_departure(mild)
        assert not is_urgent(mild)
        assert is_urgent(severe)
        assert not causes_formation_departure(mild, motor_severity=0.8)
        assert not causes_formation_departure(DroneEvent.motor_warning(0, 0.5))

    def test_departures(self):
        departing = [
            DroneEvent.low_battery(18),
            DroneEvent.critical_battery(5),
            DroneEvent.of(EventKind.RETURN_TO_HOME),
            DroneEvent.point_of_interest(Position3D(1, 1, 1)),
            DroneEvent.of(EventKind.FOLLOW_ME_REQUESTED, "p1"),
            DroneEvent.of(EventKind.HIGH_WIND, 14.0),
            DroneEvent.of(EventKind.SENSOR_FAULT, "baro"),
        ]
        for event in departing:
            assert causes_formation_departure(event), event.kind

        staying = [
            DroneEvent.of(EventKind.GPS_LOST),
            DroneEvent.ready_to_rejoin(),
            DroneEvent.of(EventKind.RAIN_DETECTED),
            CustomEvent("SHOW_OFF"),
        ]
        for event in staying:
            assert not causes_formation_departure(event)


class TestDroneProfile:
    """Test profile thresholds."""

    def test_battery_events(self):
        assert CRAZYFLIE.battery_event(50.0) is None
        assert CRAZYFLIE.battery_event(18.0) == DroneEvent.low_battery(18.0)
        assert CRAZYFLIE.battery_event(9.0) == DroneEvent.critical_battery(9.0)

    def test_environment_events(self):
        assert CRAZYFLIE.environment_event(6.0, 20.0).kind == EventKind.HIGH_WIND
        assert SCOUT.environment_event(6.0, 20.0) is None
        assert CRAZYFLIE.environment_event(1.0, -5.0).kind == EventKind.TEMPERATURE_WARNING


class TestMessages:
    """Test notifications and commands."""

    def test_priority_from_urgency(self):
        urgent = SwarmNotification.create(1, DroneEvent.critical_battery(5), Position3D(0, 0, 0))
        normal = SwarmNotification.create(1, DroneEvent.low_battery(18), Position3D(0, 0, 0))
        assert urgent.priority == MessagePriority.CRITICAL
        assert normal.priority == MessagePriority.NORMAL

    def test_metadata_not_compared(self):
        """Test timestamp and priority do not affect equality."""
        a = SwarmNotification(1, DroneEvent.low_battery(18), Position3D(0, 0, 0), timestamp=1.0)
        b = SwarmNotification(
            1, DroneEvent.low_battery(18), Position3D(0, 0, 0),
            timestamp=2.0, priority=MessagePriority.HIGH
        )
        assert a == b

    def test_command_targets(self):
        broadcast = SwarmCommand(None, DroneCommand.resume())
        targeted = SwarmCommand([1, 2], DroneCommand.hold(10))

        assert broadcast.is_broadcast
        assert targeted.targets == (1, 2)
        assert targeted.command.kind == CommandKind.HOLD
        assert targeted.command.value == 10.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
