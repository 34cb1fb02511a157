"""LiveKit helper service.

This module provides a thin wrapper around the `livekit-api` package, plus
the two adapters the domain consumes: a credential issuer that signs join
tokens and an egress provider that records rooms to S3.

Usage:
    from livebroker.services.integrations.livekit_service import livekit_service

    token = await livekit_service.create_access_token(
        identity="Alice",
        room="alice-room",
        can_publish=True,
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from livekit import api
from livekit.api.twirp_client import TwirpError, TwirpErrorCode
from loguru import logger

from livebroker.app_config import AppEnvironConfig, get_app_environ_config
from livebroker.domain.live.recording import DestinationSpec, EgressJobInfo
from livebroker.domain.live.session import ParticipantGrants
from livebroker.schemas import EgressStatus
from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

_EGRESS_STATUS_MAP: dict[int, EgressStatus] = {
    api.EgressStatus.EGRESS_STARTING: EgressStatus.STARTING,
    api.EgressStatus.EGRESS_ACTIVE: EgressStatus.ACTIVE,
    api.EgressStatus.EGRESS_ENDING: EgressStatus.ENDING,
    api.EgressStatus.EGRESS_COMPLETE: EgressStatus.COMPLETE,
    api.EgressStatus.EGRESS_FAILED: EgressStatus.FAILED,
    api.EgressStatus.EGRESS_ABORTED: EgressStatus.ABORTED,
    api.EgressStatus.EGRESS_LIMIT_REACHED: EgressStatus.LIMIT_REACHED,
}

_UNAVAILABLE_TWIRP_CODES = {
    TwirpErrorCode.UNAVAILABLE,
    TwirpErrorCode.UNAUTHENTICATED,
    TwirpErrorCode.PERMISSION_DENIED,
}


def _ns_to_dt(value: int) -> datetime | None:
    return datetime.fromtimestamp(value / 1e9, tz=timezone.utc) if value else None


def to_egress_job_info(info: api.EgressInfo) -> EgressJobInfo:
    """Convert a LiveKit EgressInfo into the provider-neutral job view."""
    return EgressJobInfo(
        job_id=info.egress_id,
        room_id=info.room_name,
        status=_EGRESS_STATUS_MAP.get(info.status, EgressStatus.UNKNOWN),
        artifacts=[f.filename for f in info.file_results if f.filename],
        error=info.error or None,
        started_at=_ns_to_dt(info.started_at),
        ended_at=_ns_to_dt(info.ended_at),
    )


def twirp_to_app_error(exc: TwirpError, action: str) -> AppError:
    """Map a LiveKit API error onto the dependency error codes."""
    if exc.code in _UNAVAILABLE_TWIRP_CODES:
        return AppError(
            errcode=AppErrorCode.E_DEPENDENCY_UNAVAILABLE,
            errmesg=f"Failed to {action}: {exc.message}",
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
        )
    return AppError(
        errcode=AppErrorCode.E_DEPENDENCY_FAILURE,
        errmesg=f"Failed to {action}: {exc.message}",
        status_code=HttpStatusCode.BAD_GATEWAY,
    )


class LivekitService:
    """Service wrapper for LiveKit server SDK (livekit-api package).

    This service provides specific methods for LiveKit operations to make
    usage patterns explicit and discoverable.
    """

    def __init__(self, cfg: AppEnvironConfig | None = None) -> None:
        self._cfg = cfg or get_app_environ_config()
        logger.info(f"LivekitService initialized, configured={self.is_configured}")

    @property
    def is_configured(self) -> bool:
        return self._cfg.livekit_configured

    @property
    def server_url(self) -> str | None:
        return self._cfg.LIVEKIT_URL

    def _credentials(self) -> tuple[str, str]:
        api_key = self._cfg.LIVEKIT_API_KEY
        api_secret = self._cfg.LIVEKIT_API_SECRET
        if not api_key or not api_secret:
            logger.error("LIVEKIT_API_KEY or LIVEKIT_API_SECRET not configured")
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_UNAVAILABLE,
                errmesg="RTC provider credentials must be configured. Set them in env.local or environment variables.",
                status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
            )
        return api_key, api_secret

    @asynccontextmanager
    async def _get_api_client(self) -> AsyncIterator[api.LiveKitAPI]:
        """Internal method to get LiveKit API client.

        This is private to force callers to use specific methods.

        Raises:
            AppError: If LIVEKIT_URL or the API credentials are not configured
        """
        url = self._cfg.LIVEKIT_URL
        if not url:
            logger.error("LIVEKIT_URL not configured")
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_UNAVAILABLE,
                errmesg="RTC provider URL must be configured. Set it in env.local or environment variables.",
                status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
            )
        api_key, api_secret = self._credentials()

        logger.debug(f"Creating LiveKit API client for URL={url}")
        async with api.LiveKitAPI(url, api_key, api_secret) as lkapi:
            yield lkapi

    async def create_access_token(
        self,
        identity: str,
        room: str,
        name: str | None = None,
        can_publish: bool = True,
        can_subscribe: bool = True,
        can_publish_data: bool = True,
        ttl: timedelta | None = None,
    ) -> str:
        """Create and return a LiveKit JWT access token.

        Args:
            identity: Unique identity for the participant
            room: Room name to grant access to
            name: Display name for the participant (defaults to identity)
            can_publish: Grant permission to publish tracks (default: True)
            can_subscribe: Grant permission to subscribe to tracks (default: True)
            can_publish_data: Grant permission to publish data (default: True)
            ttl: Token lifetime (default: LIVEKIT_TOKEN_TTL_SECONDS)

        Returns:
            JWT token string

        Raises:
            AppError: If LIVEKIT_API_KEY or LIVEKIT_API_SECRET is not configured
        """
        api_key, api_secret = self._credentials()

        logger.info(
            f"Creating LiveKit access token for identity={identity}, room={room}, publish={can_publish}"
        )

        grants = api.VideoGrants(
            room_join=True,
            room=room,
            can_publish=can_publish,
            can_subscribe=can_subscribe,
            can_publish_data=can_publish_data,
        )
        token = (
            api.AccessToken(api_key, api_secret)
            .with_identity(identity)
            .with_name(name or identity)
            .with_grants(grants)
            .with_ttl(ttl or timedelta(seconds=self._cfg.LIVEKIT_TOKEN_TTL_SECONDS))
        )

        jwt_token = token.to_jwt()
        logger.debug(f"Successfully created LiveKit access token for identity={identity}")
        return jwt_token

    async def start_room_composite_egress(
        self,
        request: api.RoomCompositeEgressRequest,
    ) -> api.EgressInfo:
        """Start a room composite egress.

        Example:
            egress_request = api.RoomCompositeEgressRequest(
                room_name="my-room",
                layout="grid",
                file_outputs=[api.EncodedFileOutput(
                    file_type=api.EncodedFileType.MP4,
                    filepath="live-recordings/my-room/1700000000000.mp4",
                    s3=api.S3Upload(access_key=..., secret=..., region=..., bucket=...),
                )],
            )
            egress_info = await livekit_service.start_room_composite_egress(egress_request)
        """
        logger.info(f"Starting room composite egress for room={request.room_name}")
        async with self._get_api_client() as lkapi:
            egress_info = await lkapi.egress.start_room_composite_egress(request)
            logger.debug(
                f"Successfully started egress: egress_id={egress_info.egress_id} for room={request.room_name}"
            )
            return egress_info

    async def stop_egress(self, egress_id: str) -> api.EgressInfo:
        """Stop an active egress (idempotent).

        If the egress is already stopped (COMPLETE, FAILED, ABORTED or
        LIMIT_REACHED), the existing egress info is returned instead of
        raising an error.

        Raises:
            TwirpError: If the request fails for reasons other than the egress already being stopped
        """
        logger.info(f"Stopping egress: egress_id={egress_id}")
        async with self._get_api_client() as lkapi:
            try:
                egress_info = await lkapi.egress.stop_egress(
                    api.StopEgressRequest(egress_id=egress_id)
                )
                logger.debug(f"Successfully stopped egress: {egress_id}")
                return egress_info
            except TwirpError as e:
                if e.code == TwirpErrorCode.FAILED_PRECONDITION:
                    response = await lkapi.egress.list_egress(
                        api.ListEgressRequest(egress_id=egress_id)
                    )
                    if response.items:
                        egress_info = response.items[0]
                        if _EGRESS_STATUS_MAP.get(egress_info.status, EgressStatus.UNKNOWN).is_terminal:
                            logger.info(
                                f"Egress already stopped: egress_id={egress_id}, "
                                f"status={api.EgressStatus.Name(egress_info.status)}"
                            )
                            return egress_info
                raise

    async def list_egress(
        self,
        room_name: str | None = None,
        egress_id: str | None = None,
        active: bool | None = None,
    ) -> list[api.EgressInfo]:
        async with self._get_api_client() as lkapi:
            response = await lkapi.egress.list_egress(
                api.ListEgressRequest(
                    room_name=room_name or "",
                    egress_id=egress_id or "",
                    active=bool(active),
                )
            )
            return list(response.items)


class LivekitCredentialIssuer:
    """Signs join credentials with the LiveKit API key pair."""

    def __init__(self, service: LivekitService) -> None:
        self.service = service

    @property
    def is_configured(self) -> bool:
        return self.service.is_configured

    @property
    def server_url(self) -> str | None:
        return self.service.server_url

    async def issue(self, room_id: str, identity: str, grants: ParticipantGrants) -> str:
        return await self.service.create_access_token(
            identity=identity,
            room=room_id,
            name=identity,
            can_publish=grants.can_publish,
            can_subscribe=grants.can_subscribe,
            can_publish_data=grants.can_publish_data,
        )


class LivekitEgressProvider:
    """Records a room with a LiveKit room composite egress uploading an MP4 to S3.

    A stop waits up to `settle_seconds` for the egress to reach a terminal
    status, since LiveKit answers a stop while the file is still uploading.
    """

    def __init__(
        self,
        service: LivekitService,
        layout: str = "grid",
        settle_seconds: float = 20,
        poll_interval: float = 1.0,
    ) -> None:
        self.service = service
        self.layout = layout
        self.settle_seconds = settle_seconds
        self.poll_interval = poll_interval

    @property
    def is_configured(self) -> bool:
        return self.service.is_configured

    async def start(self, room_id: str, destination: DestinationSpec) -> str:
        request = api.RoomCompositeEgressRequest(
            room_name=room_id,
            layout=self.layout,
            file_outputs=[
                api.EncodedFileOutput(
                    file_type=api.EncodedFileType.MP4,
                    filepath=destination.file_path,
                    s3=api.S3Upload(
                        access_key=destination.access_key,
                        secret=destination.secret,
                        region=destination.region,
                        bucket=destination.bucket,
                    ),
                )
            ],
        )
        try:
            egress_info = await self.service.start_room_composite_egress(request)
        except TwirpError as e:
            logger.error(f"Egress start failed for room={room_id}: code={e.code} msg={e.message}")
            raise twirp_to_app_error(e, "start recording") from e
        return egress_info.egress_id

    async def stop(self, job_id: str) -> EgressJobInfo:
        try:
            info = to_egress_job_info(await self.service.stop_egress(job_id))
            return await self._settle(info)
        except TwirpError as e:
            logger.error(f"Egress stop failed for egress_id={job_id}: code={e.code} msg={e.message}")
            raise twirp_to_app_error(e, "stop recording") from e

    async def _settle(self, info: EgressJobInfo) -> EgressJobInfo:
        """Poll until the egress reports a terminal status or the settle window passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settle_seconds
        while not info.status.is_terminal and loop.time() < deadline:
            await asyncio.sleep(self.poll_interval)
            items = await self.service.list_egress(egress_id=info.job_id)
            if items:
                info = to_egress_job_info(items[0])

        if not info.status.is_terminal:
            logger.warning(
                f"Egress {info.job_id} still {info.status} after {self.settle_seconds}s"
            )
        return info

    async def list_jobs(
        self,
        room_id: str | None = None,
        job_id: str | None = None,
        active: bool | None = None,
    ) -> list[EgressJobInfo]:
        try:
            items = await self.service.list_egress(room_name=room_id, egress_id=job_id, active=active)
        except TwirpError as e:
            raise twirp_to_app_error(e, "list recordings") from e
        return [to_egress_job_info(item) for item in items]


livekit_service = LivekitService()
livekit_credential_issuer = LivekitCredentialIssuer(livekit_service)
livekit_egress_provider = LivekitEgressProvider(
    livekit_service,
    layout=get_app_environ_config().RECORDING_LAYOUT,
    settle_seconds=get_app_environ_config().EGRESS_STOP_SETTLE_SECONDS,
)
