"""Domain schemas."""

from .recording_state import (
    EgressStatus,
    RecordingActive,
    RecordingCompleted,
    RecordingFailed,
    RecordingIdle,
    RecordingPhase,
    RecordingStarting,
    RecordingStatus,
    RecordingStopping,
)
from .room import Room

__all__ = [
    "EgressStatus",
    "RecordingActive",
    "RecordingCompleted",
    "RecordingFailed",
    "RecordingIdle",
    "RecordingPhase",
    "RecordingStarting",
    "RecordingStatus",
    "RecordingStopping",
    "Room",
]
