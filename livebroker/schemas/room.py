"""Room schema."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .recording_state import (
    RecordingActive,
    RecordingCompleted,
    RecordingFailed,
    RecordingIdle,
    RecordingPhase,
    RecordingStatus,
    RecordingStopping,
)


class Room(BaseModel):
    """Snapshot of a room held by the registry.

    Instances handed out by the registry are copies; mutating one has no
    effect on the registry.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    owner_identity: str
    created_at: datetime
    active: bool = True
    ended_at: datetime | None = None

    recording: RecordingPhase = Field(default_factory=RecordingIdle)
    # URL of the most recent recording that completed; kept as history
    recording_destination: str | None = None

    @property
    def recording_status(self) -> RecordingStatus:
        return self.recording.kind

    @property
    def recording_active(self) -> bool:
        """True while a provider job is in flight for this room."""
        return isinstance(self.recording, RecordingActive | RecordingStopping)

    @property
    def recording_job_id(self) -> str | None:
        """The in-flight or last job for this room; cleared when a new start is admitted."""
        if isinstance(
            self.recording, RecordingActive | RecordingStopping | RecordingCompleted | RecordingFailed
        ):
            return self.recording.job_id
        return None


__all__ = ["Room"]
