"""
Text wire format for swarm notifications and commands.

    EVT|<vehicleId>|<eventCode>|<durationCode>|<x>|<y>|<z>|<extra>
    CMD|<targets>|<commandCode>|<params>

durationCode is M<seconds>, B<seconds> or X. targets is '*' for a
broadcast or a comma-joined id list. Free text (ids, names, custom keys and
values) is percent-escaped so the delimiters '|', ',' and '=' never appear
inside a field. Decoding never raises: structurally broken input yields a
DecodeError, unrecognized or malformed payloads fall back to custom events
and commands that carry the raw text.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union
from dataclasses import dataclass
from urllib.parse import quote, unquote

from planning.types import Position3D
from .events import (
    CommandKind,
    CustomEvent,
    DroneCommand,
    DroneEvent,
    DurationKind,
    EventDuration,
    EventKind,
    EXTENDED,
    MessagePriority,
    SwarmCommand,
    SwarmNotification,
    is_urgent,
    suggested_duration,
)

logger = logging.getLogger(__name__)

EVENT_PREFIX = "EVT"
COMMAND_PREFIX = "CMD"
CUSTOM_PREFIX = "CUSTOM:"
BROADCAST = "*"
DEFAULT_HOLD_SECONDS = 30.0


@dataclass(frozen=True)
class DecodeError:
    """Structurally invalid wire text."""
    reason: str
    raw: str


def _escape(text: str) -> str:
    return quote(text, safe='')


def _number(value: float) -> str:
    """Shortest text that parses back to the same float."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _encode_duration(duration: EventDuration) -> str:
    if duration.kind == DurationKind.MOMENTARY:
        return "M" + _number(duration.seconds)
    if duration.kind == DurationKind.BRIEF:
        return "B" + _number(duration.seconds)
    return "X"


def _decode_duration(code: str) -> EventDuration:
    try:
        if code.startswith("M"):
            return EventDuration.momentary(float(code[1:]))
        if code.startswith("B"):
            return EventDuration.brief(float(code[1:]))
    except ValueError:
        logger.debug(f"Unreadable duration code '{code}', treating as extended")
    return EXTENDED


def _encode_pairs(pairs: Dict[str, str]) -> str:
    return ",".join(f"{_escape(k)}={_escape(v)}" for k, v in pairs.items())


def _decode_pairs(text: str) -> Dict[str, str]:
    pairs = {}
    if not text:
        return pairs
    for item in text.split(","):
        key, sep, value = item.partition("=")
        if sep:
            pairs[unquote(key)] = unquote(value)
    return pairs


def _encode_values(event: DroneEvent) -> str:
    tokens: List[str] = []
    for schema, value in zip(event.kind.fields, event.values):
        field_type = schema[1]
        if field_type is Position3D:
            tokens.extend(_number(c) for c in value.as_tuple())
        elif field_type is bool:
            tokens.append("1" if value else "0")
        elif field_type is int:
            tokens.append(str(int(value)))
        elif field_type is float:
            tokens.append(_number(value))
        else:
            tokens.append(_escape(value))
    return ",".join(tokens)


def _decode_values(kind: EventKind, extra: str) -> DroneEvent:
    """Parse the payload of a standard event; raises ValueError if malformed."""
    if not kind.fields:
        return DroneEvent(kind)

    tokens = extra.split(",")
    values = []
    pos = 0
    for schema in kind.fields:
        name, field_type = schema[0], schema[1]
        width = 3 if field_type is Position3D else 1
        if pos + width > len(tokens):
            if len(schema) > 2:
                values.append(schema[2])
                continue
            raise ValueError(f"missing field '{name}'")
        chunk = tokens[pos:pos + width]
        pos += width

        if field_type is Position3D:
            values.append(Position3D(*(float(t) for t in chunk)))
        elif field_type is bool:
            values.append(chunk[0] == "1")
        elif field_type is int:
            values.append(int(chunk[0]))
        elif field_type is float:
            values.append(float(chunk[0]))
        else:
            values.append(unquote(chunk[0]))

    if pos != len(tokens):
        raise ValueError(f"{len(tokens) - pos} unexpected payload fields")
    return DroneEvent.of(kind, *values)


def encode_notification(notification: SwarmNotification) -> str:
    """Encode a notification as one line of wire text."""
    event = notification.event
    if isinstance(event, CustomEvent):
        code = CUSTOM_PREFIX + _escape(event.event_type)
        extra = _encode_pairs(event.payload)
    else:
        code = event.kind.code
        extra = _encode_values(event)

    x, y, z = notification.position.as_tuple()
    return "|".join([
        EVENT_PREFIX,
        str(notification.drone_id),
        code,
        _encode_duration(suggested_duration(event)),
        _number(x),
        _number(y),
        _number(z),
        extra,
    ])


def decode_notification(text: str) -> Union[SwarmNotification, DecodeError]:
    """
    Decode wire text into a notification.

    Returns:
        SwarmNotification, or DecodeError for a wrong prefix, too few fields
        or an unreadable vehicle id / position
    """
    parts = text.split("|")
    if len(parts) < 7 or parts[0] != EVENT_PREFIX:
        return DecodeError("Invalid format: expected EVT|id|code|duration|x|y|z|extra", text)

    try:
        drone_id = int(parts[1])
    except ValueError:
        return DecodeError(f"Invalid vehicle id '{parts[1]}'", text)

    try:
        position = Position3D(float(parts[4]), float(parts[5]), float(parts[6]))
    except ValueError:
        return DecodeError(f"Invalid position '{'|'.join(parts[4:7])}'", text)

    code = parts[2]
    duration = _decode_duration(parts[3])
    extra = "|".join(parts[7:])

    if code.startswith(CUSTOM_PREFIX):
        event = CustomEvent(unquote(code[len(CUSTOM_PREFIX):]), _decode_pairs(extra), duration)
    else:
        kind = EventKind.from_code(code)
        event = None
        if kind is not None:
            try:
                event = _decode_values(kind, extra)
            except ValueError as e:
                logger.warning(f"Malformed {code} payload '{extra}': {e}")
        else:
            logger.warning(f"Unknown event code '{code}' from vehicle {drone_id}")
        if event is None:
            event = CustomEvent(code, {"raw": extra}, duration)

    priority = MessagePriority.CRITICAL if is_urgent(event) else MessagePriority.NORMAL
    return SwarmNotification(drone_id, event, position, priority=priority)


def _encode_targets(targets: Optional[Tuple[int, ...]]) -> str:
    if targets is None:
        return BROADCAST
    return ",".join(str(t) for t in targets)


def _encode_command_body(command: DroneCommand) -> Tuple[str, str]:
    if command.kind == CommandKind.HOLD:
        return command.kind.value, _number(command.value)
    if command.kind == CommandKind.GOTO:
        return command.kind.value, ",".join(_number(c) for c in command.value.as_tuple())
    if command.kind == CommandKind.SET_SPEED:
        return command.kind.value, _number(command.value)
    if command.kind == CommandKind.CUSTOM:
        return CUSTOM_PREFIX + _escape(command.name), _encode_pairs(command.parameters)
    return command.kind.value, ""


def encode_command(command: SwarmCommand) -> str:
    """Encode a command as one line of wire text."""
    code, params = _encode_command_body(command.command)
    return "|".join([COMMAND_PREFIX, _encode_targets(command.targets), code, params])


def _decode_command_body(code: str, params: str) -> DroneCommand:
    """Parse a command; raises ValueError if the parameters are malformed."""
    if code == CommandKind.HOLD.value:
        return DroneCommand.hold(float(params) if params else DEFAULT_HOLD_SECONDS)
    if code == CommandKind.RESUME.value:
        return DroneCommand.resume()
    if code == CommandKind.GOTO.value:
        coords = [float(c) for c in params.split(",")]
        if len(coords) != 3:
            raise ValueError(f"GOTO needs 3 coordinates, got {len(coords)}")
        return DroneCommand.goto(Position3D(*coords))
    if code == CommandKind.LAND.value:
        return DroneCommand.land()
    if code == CommandKind.RETURN_HOME.value:
        return DroneCommand.return_home()
    if code == CommandKind.SET_SPEED.value:
        return DroneCommand.set_speed(float(params))
    if code.startswith(CUSTOM_PREFIX):
        return DroneCommand.custom(unquote(code[len(CUSTOM_PREFIX):]), _decode_pairs(params))
    raise ValueError(f"unknown command code '{code}'")


def decode_command(text: str) -> Union[SwarmCommand, DecodeError]:
    """
    Decode wire text into a command.

    Returns:
        SwarmCommand, or DecodeError for a wrong prefix, too few fields or an
        unreadable target list
    """
    parts = text.split("|")
    if len(parts) < 3 or parts[0] != COMMAND_PREFIX:
        return DecodeError("Invalid format: expected CMD|targets|code|params", text)

    if parts[1] == BROADCAST:
        targets = None
    elif parts[1] == "":
        targets = ()
    else:
        try:
            targets = tuple(int(t) for t in parts[1].split(","))
        except ValueError:
            return DecodeError(f"Invalid target list '{parts[1]}'", text)

    code = parts[2]
    params = "|".join(parts[3:])
    try:
        command = _decode_command_body(code, params)
    except ValueError as e:
        logger.warning(f"Unrecognized command '{code}': {e}")
        command = DroneCommand.custom(code, {"raw": params} if params else {})

    return SwarmCommand(targets, command)
