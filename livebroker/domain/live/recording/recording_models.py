"""Recording domain models and the egress provider contract."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from livebroker.schemas import EgressStatus, RecordingStatus


class DestinationSpec(BaseModel):
    """Where a provider job should upload its output."""

    bucket: str
    region: str
    access_key: str = Field(repr=False)
    secret: str = Field(repr=False)
    file_path: str


class EgressJobInfo(BaseModel):
    """Provider-neutral view of a recording job."""

    job_id: str
    room_id: str = ""
    status: EgressStatus
    artifacts: list[str] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None


class EgressProvider(Protocol):
    """External encode-and-upload service."""

    @property
    def is_configured(self) -> bool: ...

    async def start(self, room_id: str, destination: DestinationSpec) -> str:
        """Begin a job for the room and return its job id."""
        ...

    async def stop(self, job_id: str) -> EgressJobInfo:
        """Stop a job and return its final known state."""
        ...

    async def list_jobs(
        self,
        room_id: str | None = None,
        job_id: str | None = None,
        active: bool | None = None,
    ) -> list[EgressJobInfo]: ...


class RecordingStartResult(BaseModel):
    job_id: str
    room_id: str
    file_path: str
    status: RecordingStatus = RecordingStatus.STARTING


class RecordingStopResult(BaseModel):
    job_id: str
    room_id: str
    status: RecordingStatus
    destination: str | None = None
    reason: str | None = None


class RecordingStatusView(BaseModel):
    """Read-only projection of a room's recording state."""

    room_id: str
    owner_identity: str
    is_active: bool
    recording_active: bool
    recording_status: RecordingStatus
    job_id: str | None = None
    destination: str | None = None
