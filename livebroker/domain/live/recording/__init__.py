from .recording_coordinator import RecordingCoordinator
from .recording_destination import RecordingStorage
from .recording_models import (
    DestinationSpec,
    EgressJobInfo,
    EgressProvider,
    RecordingStartResult,
    RecordingStatusView,
    RecordingStopResult,
)
from .recording_state_machine import RecordingStateMachine

__all__ = [
    "DestinationSpec",
    "EgressJobInfo",
    "EgressProvider",
    "RecordingCoordinator",
    "RecordingStartResult",
    "RecordingStateMachine",
    "RecordingStatusView",
    "RecordingStopResult",
    "RecordingStorage",
]
