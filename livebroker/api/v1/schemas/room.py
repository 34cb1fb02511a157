from datetime import datetime

from pydantic import BaseModel, Field, StrictBool


class CreateRoomIn(BaseModel):
    """Request to create a room."""

    host_name: str = Field(description="Display name of the host (1-50 characters)")


class CreateRoomOut(BaseModel):
    """Response after creating a room."""

    room_id: str = Field(description="Generated room ID")
    host_token: str = Field(description="Join token for the host, with publish permissions")
    share_url: str = Field(description="Link viewers open to watch the room")
    server_url: str | None = Field(default=None, description="Media server URL to connect to")
    host_name: str
    created_at: datetime


class GetRoomOut(BaseModel):
    """Public room info."""

    room_id: str
    host_name: str
    created_at: datetime
    is_active: bool
    is_recording: bool
    recording_url: str | None = Field(default=None, description="URL of the last completed recording")
    ended_at: datetime | None = None
    is_known: bool = Field(default=True, description="False for a placeholder of an unknown room")


class EndRoomOut(BaseModel):
    message: str
    room_id: str
    ended_at: datetime | None = None


class IssueTokenIn(BaseModel):
    """Request for a join token."""

    room_name: str = Field(description="Room to join")
    participant_name: str = Field(description="Display name of the participant (1-50 characters)")
    is_host: StrictBool = Field(default=False, description="Request host (publish) permissions")


class IssueTokenOut(BaseModel):
    token: str
    server_url: str | None = None
    room_name: str
    participant_name: str
    is_host: bool
