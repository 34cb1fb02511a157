"""Join token endpoint."""

from fastapi import APIRouter, Depends

from livebroker.api.v1.dependency import get_session_gateway
from livebroker.api.v1.schemas.base import ApiOut
from livebroker.api.v1.schemas.room import IssueTokenIn, IssueTokenOut
from livebroker.domain.live.session import SessionGateway

router = APIRouter(tags=["token"])


@router.post("/token")
async def issue_token(
    body: IssueTokenIn,
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[IssueTokenOut]:
    """Issue a join token.

    Hosts get publish permissions; viewers get subscribe and data only.

    Raises:
        400: Invalid room_name, participant_name or is_host
        404: Unknown room, strict viewer policy only
        410: Room has ended (viewers)
        503: Token service not configured
    """
    credential = await gateway.issue_join_credential(
        body.room_name, body.participant_name, body.is_host
    )
    return ApiOut[IssueTokenOut](results=IssueTokenOut(**credential.model_dump()))
