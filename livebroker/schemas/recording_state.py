"""Recording lifecycle enums and the per-room recording phase."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class RecordingStatus(str, Enum):
    """Recording job lifecycle states.

    State Transition Flow:

    IDLE → STARTING → ACTIVE → STOPPING → COMPLETED | FAILED
              ↓
            IDLE (provider refused the start, room left as it was)

    COMPLETED and FAILED are terminal for the job; the room is eligible
    for a new recording again.
    """

    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def terminal_states(cls) -> set["RecordingStatus"]:
        return {RecordingStatus.COMPLETED, RecordingStatus.FAILED}


class EgressStatus(str, Enum):
    """Provider-side job status, independent of the provider's own enum."""

    STARTING = "starting"
    ACTIVE = "active"
    ENDING = "ending"
    COMPLETE = "complete"
    FAILED = "failed"
    ABORTED = "aborted"
    LIMIT_REACHED = "limit_reached"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in {
            EgressStatus.COMPLETE,
            EgressStatus.FAILED,
            EgressStatus.ABORTED,
            EgressStatus.LIMIT_REACHED,
        }


class _Phase(BaseModel):
    model_config = ConfigDict(frozen=True)


class RecordingIdle(_Phase):
    kind: Literal[RecordingStatus.IDLE] = RecordingStatus.IDLE


class RecordingStarting(_Phase):
    """Start admitted, provider call in flight. No job id yet."""

    kind: Literal[RecordingStatus.STARTING] = RecordingStatus.STARTING
    file_path: str
    requested_at: datetime


class RecordingActive(_Phase):
    kind: Literal[RecordingStatus.ACTIVE] = RecordingStatus.ACTIVE
    job_id: str
    file_path: str
    started_at: datetime


class RecordingStopping(_Phase):
    kind: Literal[RecordingStatus.STOPPING] = RecordingStatus.STOPPING
    job_id: str
    file_path: str
    started_at: datetime


class RecordingCompleted(_Phase):
    kind: Literal[RecordingStatus.COMPLETED] = RecordingStatus.COMPLETED
    job_id: str
    destination: str
    ended_at: datetime


class RecordingFailed(_Phase):
    kind: Literal[RecordingStatus.FAILED] = RecordingStatus.FAILED
    job_id: str
    reason: str
    ended_at: datetime


RecordingPhase = Annotated[
    RecordingIdle
    | RecordingStarting
    | RecordingActive
    | RecordingStopping
    | RecordingCompleted
    | RecordingFailed,
    Field(discriminator="kind"),
]


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
]
