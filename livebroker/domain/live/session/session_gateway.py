"""Session gateway: the validated entry point to rooms, credentials and recordings."""

from collections.abc import Callable
from datetime import datetime

from loguru import logger

from livebroker.app_config import ViewerJoinPolicy
from livebroker.domain.live.recording import (
    EgressJobInfo,
    RecordingCoordinator,
    RecordingStartResult,
    RecordingStatusView,
    RecordingStopResult,
)
from livebroker.domain.live.room import RoomRegistry
from livebroker.domain.utils.timeutils import utc_now
from livebroker.domain.utils.validators import (
    validate_display_name,
    validate_job_id,
    validate_role_flag,
    validate_room_id,
)
from livebroker.schemas import Room
from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .session_models import (
    OWNER_GRANTS,
    VIEWER_GRANTS,
    CreatedRoom,
    CredentialIssuer,
    EndedRoom,
    JoinCredential,
    RoomView,
)

UNKNOWN_HOST_NAME = "Unknown Host"


def _room_not_found() -> AppError:
    return AppError(
        errcode=AppErrorCode.E_ROOM_NOT_FOUND,
        errmesg="Room not found",
        status_code=HttpStatusCode.NOT_FOUND,
    )


class SessionGateway:
    """Validates every input, then delegates to the registry, the issuer or the coordinator."""

    def __init__(
        self,
        registry: RoomRegistry,
        coordinator: RecordingCoordinator,
        issuer: CredentialIssuer,
        frontend_url: str,
        viewer_join_policy: ViewerJoinPolicy = ViewerJoinPolicy.PERMISSIVE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.registry = registry
        self.coordinator = coordinator
        self.issuer = issuer
        self.frontend_url = frontend_url.rstrip("/")
        self.viewer_join_policy = viewer_join_policy
        self._clock = clock

    def share_url(self, room_id: str) -> str:
        return f"{self.frontend_url}/stream/{room_id}"

    def _ensure_issuer(self) -> None:
        if not self.issuer.is_configured:
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_UNAVAILABLE,
                errmesg="Token service not available. Check LiveKit configuration.",
                status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
            )

    # ==================== ROOMS ====================

    async def create_room(self, owner_identity: object) -> CreatedRoom:
        """Create a room owned by `owner_identity` and sign the owner's credential."""
        host_name = validate_display_name(owner_identity, "host_name")
        self._ensure_issuer()

        room = await self.registry.create(host_name)
        host_token = await self.issuer.issue(room.id, host_name, OWNER_GRANTS)

        return CreatedRoom(
            room_id=room.id,
            host_token=host_token,
            share_url=self.share_url(room.id),
            server_url=self.issuer.server_url,
            host_name=host_name,
            created_at=room.created_at,
        )

    async def get_room(self, room_id: object) -> RoomView:
        """Public room info.

        Unknown rooms yield a placeholder under the permissive viewer policy
        so share links keep working, and E_ROOM_NOT_FOUND under the strict one.
        """
        room_id = validate_room_id(room_id, "room_id")
        room = await self.registry.get(room_id)
        if room is None:
            if self.viewer_join_policy == ViewerJoinPolicy.STRICT:
                raise _room_not_found()
            logger.info(f"Room {room_id} unknown, returning placeholder")
            return RoomView(
                room_id=room_id,
                host_name=UNKNOWN_HOST_NAME,
                created_at=self._clock(),
                is_active=True,
                is_recording=False,
                is_known=False,
            )
        return self._room_view(room)

    async def end_room(self, room_id: object) -> EndedRoom:
        """Mark a room ended. Ending an ended room succeeds again."""
        room_id = validate_room_id(room_id, "room_id")
        room = await self.registry.end(room_id)
        if room is None:
            raise _room_not_found()
        return EndedRoom(room_id=room.id, ended_at=room.ended_at)

    @staticmethod
    def _room_view(room: Room) -> RoomView:
        return RoomView(
            room_id=room.id,
            host_name=room.owner_identity,
            created_at=room.created_at,
            is_active=room.active,
            is_recording=room.recording_active,
            recording_url=room.recording_destination,
            ended_at=room.ended_at,
        )

    # ==================== CREDENTIALS ====================

    async def issue_join_credential(
        self, room_id: object, identity: object, as_owner: object = False
    ) -> JoinCredential:
        """Sign a join credential.

        Owners get publish, subscribe and data grants; viewers never get
        publish. A viewer asking for an ended room gets E_ROOM_ENDED; a
        viewer asking for an unknown room is let through unless the viewer
        policy is strict.
        """
        room_id = validate_room_id(room_id, "room_name")
        identity = validate_display_name(identity, "participant_name")
        as_owner = validate_role_flag(as_owner, "is_host")
        self._ensure_issuer()

        if not as_owner:
            room = await self.registry.get(room_id)
            if room is None:
                if self.viewer_join_policy == ViewerJoinPolicy.STRICT:
                    raise _room_not_found()
                logger.warning(f"Viewer {identity} joining unknown room {room_id}")
            elif not room.active:
                raise AppError(
                    errcode=AppErrorCode.E_ROOM_ENDED,
                    errmesg="This stream has ended",
                    status_code=HttpStatusCode.GONE,
                )

        grants = OWNER_GRANTS if as_owner else VIEWER_GRANTS
        token = await self.issuer.issue(room_id, identity, grants)
        logger.info(f"Issued {'host' if as_owner else 'viewer'} token for {identity} in {room_id}")

        return JoinCredential(
            token=token,
            server_url=self.issuer.server_url,
            room_name=room_id,
            participant_name=identity,
            is_host=as_owner,
        )

    # ==================== RECORDINGS ====================

    async def start_recording(self, room_id: object) -> RecordingStartResult:
        return await self.coordinator.start_recording(validate_room_id(room_id, "room_name"))

    async def stop_recording(self, job_id: object) -> RecordingStopResult:
        return await self.coordinator.stop_recording(validate_job_id(job_id, "egress_id"))

    async def recording_status(self, room_id: object) -> RecordingStatusView:
        return await self.coordinator.status(validate_room_id(room_id, "room_id"))

    async def recording_jobs(self, room_id: object, active: bool | None = None) -> list[EgressJobInfo]:
        return await self.coordinator.list_jobs(validate_room_id(room_id, "room_id"), active=active)
