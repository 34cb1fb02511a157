"""Session domain models."""

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel


class ParticipantGrants(BaseModel):
    """Media permissions carried by a join credential."""

    can_publish: bool
    can_subscribe: bool = True
    can_publish_data: bool = True


OWNER_GRANTS = ParticipantGrants(can_publish=True, can_subscribe=True, can_publish_data=True)
VIEWER_GRANTS = ParticipantGrants(can_publish=False, can_subscribe=True, can_publish_data=True)


class CredentialIssuer(Protocol):
    """Signs capability tokens for the media server."""

    @property
    def is_configured(self) -> bool: ...

    @property
    def server_url(self) -> str | None: ...

    async def issue(self, room_id: str, identity: str, grants: ParticipantGrants) -> str:
        """Return a signed token granting `identity` access to `room_id`."""
        ...


class CreatedRoom(BaseModel):
    room_id: str
    host_token: str
    share_url: str
    server_url: str | None = None
    host_name: str
    created_at: datetime


class JoinCredential(BaseModel):
    token: str
    server_url: str | None = None
    room_name: str
    participant_name: str
    is_host: bool


class RoomView(BaseModel):
    """Public view of a room.

    `is_known` is False for the placeholder returned for rooms the
    registry has never seen.
    """

    room_id: str
    host_name: str
    created_at: datetime
    is_active: bool
    is_recording: bool
    recording_url: str | None = None
    ended_at: datetime | None = None
    is_known: bool = True


class EndedRoom(BaseModel):
    room_id: str
    ended_at: datetime | None = None
