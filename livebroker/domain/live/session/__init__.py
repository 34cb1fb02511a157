from .session_gateway import SessionGateway
from .session_models import (
    OWNER_GRANTS,
    VIEWER_GRANTS,
    CreatedRoom,
    CredentialIssuer,
    EndedRoom,
    JoinCredential,
    ParticipantGrants,
    RoomView,
)

__all__ = [
    "OWNER_GRANTS",
    "VIEWER_GRANTS",
    "CreatedRoom",
    "CredentialIssuer",
    "EndedRoom",
    "JoinCredential",
    "ParticipantGrants",
    "RoomView",
    "SessionGateway",
]
