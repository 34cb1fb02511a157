from datetime import datetime

from pydantic import BaseModel, Field

from livebroker.schemas import EgressStatus, RecordingStatus


class StartRecordingIn(BaseModel):
    """Request to start recording a room."""

    room_name: str = Field(description="Room to record")


class StartRecordingOut(BaseModel):
    egress_id: str = Field(description="Recording job ID, used to stop the recording")
    room_name: str
    file_path: str = Field(description="Object path the recording is uploaded to")
    status: RecordingStatus
    message: str


class StopRecordingIn(BaseModel):
    """Request to stop a recording."""

    egress_id: str = Field(description="Recording job ID returned by start")


class StopRecordingOut(BaseModel):
    egress_id: str
    s3_url: str | None = Field(default=None, description="URL of the recording when completed")
    status: RecordingStatus
    error: str | None = Field(default=None, description="Failure reason when the recording failed")
    message: str


class RecordingStatusOut(BaseModel):
    room_id: str
    is_recording: bool
    recording_status: RecordingStatus
    egress_id: str | None = None
    recording_url: str | None = None
    host_name: str
    is_active: bool


class RecordingJobOut(BaseModel):
    egress_id: str
    room_name: str
    status: EgressStatus
    files: list[str] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None


class ListRecordingJobsOut(BaseModel):
    room_id: str
    jobs: list[RecordingJobOut]
