"""
Live swarm adaptation.

This package handles vehicle self-reported events:
- Event and command model with urgency and duration classification
- Pipe-delimited text wire protocol
- Immutable swarm state with lifecycle transitions
- Roster-aware formation replanning
"""

from .events import (
    EventKind,
    EventDuration,
    DroneEvent,
    CustomEvent,
    DroneProfile,
    DroneCommand,
    CommandKind,
    MessagePriority,
    SwarmNotification,
    SwarmCommand,
)
from .protocol import (
    DecodeError,
    encode_notification,
    decode_notification,
    encode_command,
    decode_command,
)
from .state import Lifecycle, VehicleState, SwarmState
from .adaptation import AdaptationResult, adapt_formation, next_generation, current_generation
from .handler import EventHandlerConfig, handle_notification, resume_swarm

__all__ = [
    'EventKind',
    'EventDuration',
    'DroneEvent',
    'CustomEvent',
    'DroneProfile',
    'DroneCommand',
    'CommandKind',
    'MessagePriority',
    'SwarmNotification',
    'SwarmCommand',
    'DecodeError',
    'encode_notification',
    'decode_notification',
    'encode_command',
    'decode_command',
    'Lifecycle',
    'VehicleState',
    'SwarmState',
    'AdaptationResult',
    'adapt_formation',
    'next_generation',
    'current_generation',
    'EventHandlerConfig',
    'handle_notification',
    'resume_swarm',
]
