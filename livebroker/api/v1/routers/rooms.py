"""Room endpoints: create, inspect and end rooms."""

from fastapi import APIRouter, Depends, Path

from livebroker.api.v1.dependency import get_session_gateway
from livebroker.api.v1.schemas.base import ApiOut
from livebroker.api.v1.schemas.room import CreateRoomIn, CreateRoomOut, EndRoomOut, GetRoomOut
from livebroker.domain.live.session import SessionGateway

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("", status_code=201)
async def create_room(
    body: CreateRoomIn,
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[CreateRoomOut]:
    """Create a room and return the host's join token and the viewer share link.

    Raises:
        400: Invalid host_name
        503: Token service not configured
    """
    created = await gateway.create_room(body.host_name)
    return ApiOut[CreateRoomOut](results=CreateRoomOut(**created.model_dump()))


@router.get("/{room_id}")
async def get_room(
    room_id: str = Path(..., description="Room ID"),
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[GetRoomOut]:
    """Get public room info.

    Unknown rooms return a placeholder (`is_known=false`) under the permissive
    viewer policy and 404 under the strict one.
    """
    room = await gateway.get_room(room_id)
    return ApiOut[GetRoomOut](results=GetRoomOut(**room.model_dump()))


@router.delete("/{room_id}")
async def end_room(
    room_id: str = Path(..., description="Room ID"),
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[EndRoomOut]:
    """End a room. Ending an already ended room succeeds again.

    Raises:
        404: Room not found
    """
    ended = await gateway.end_room(room_id)
    return ApiOut[EndRoomOut](
        results=EndRoomOut(message="Room ended", room_id=ended.room_id, ended_at=ended.ended_at)
    )
