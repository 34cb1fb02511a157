"""Unit tests for the LiveKit adapters."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from livekit import api
from livekit.api.twirp_client import TwirpError, TwirpErrorCode

from livebroker.app_config import AppEnvironConfig
from livebroker.domain.live.recording import DestinationSpec
from livebroker.domain.live.session import OWNER_GRANTS, VIEWER_GRANTS
from livebroker.schemas import EgressStatus
from livebroker.services.integrations.livekit_service import (
    LivekitCredentialIssuer,
    LivekitEgressProvider,
    LivekitService,
    to_egress_job_info,
    twirp_to_app_error,
)
from livebroker.utils.app_errors import AppError, AppErrorCode

API_KEY = "devkey"
API_SECRET = "a-test-secret-that-is-long-enough-for-hs256"


def _egress(egress_id: str = "EG_1", status=api.EgressStatus.EGRESS_ACTIVE, filename: str = ""):
    file_results = [api.FileInfo(filename=filename)] if filename else []
    return api.EgressInfo(
        egress_id=egress_id,
        room_name="alice-room",
        status=status,
        file_results=file_results,
    )


@pytest.fixture
def configured_service() -> LivekitService:
    return LivekitService(
        AppEnvironConfig(
            LIVEKIT_URL="wss://rtc.example.test",
            LIVEKIT_API_KEY=API_KEY,
            LIVEKIT_API_SECRET=API_SECRET,
        )
    )


@pytest.fixture
def unconfigured_service() -> LivekitService:
    return LivekitService(
        AppEnvironConfig(LIVEKIT_URL=None, LIVEKIT_API_KEY=None, LIVEKIT_API_SECRET=None)
    )


@pytest.fixture
def mock_service() -> MagicMock:
    service = MagicMock(spec=LivekitService)
    service.is_configured = True
    service.start_room_composite_egress = AsyncMock()
    service.stop_egress = AsyncMock()
    service.list_egress = AsyncMock(return_value=[])
    return service


@pytest.fixture
def destination() -> DestinationSpec:
    return DestinationSpec(
        bucket="rec-bucket",
        region="eu-west-1",
        access_key="AKIATEST",
        secret="secret",
        file_path="live-recordings/alice-room/1700000000000.mp4",
    )


class TestToEgressJobInfo:
    def test_completed_with_file(self):
        info = to_egress_job_info(
            _egress(status=api.EgressStatus.EGRESS_COMPLETE, filename="live-recordings/a/1.mp4")
        )

        assert info.job_id == "EG_1"
        assert info.room_id == "alice-room"
        assert info.status == EgressStatus.COMPLETE
        assert info.artifacts == ["live-recordings/a/1.mp4"]
        assert info.error is None
        assert info.started_at is None

    def test_failed_with_error(self):
        egress = _egress(status=api.EgressStatus.EGRESS_FAILED)
        egress.error = "upload denied"

        info = to_egress_job_info(egress)

        assert info.status == EgressStatus.FAILED
        assert info.error == "upload denied"
        assert info.artifacts == []


class TestTwirpToAppError:
    @pytest.mark.parametrize(
        "code",
        [TwirpErrorCode.UNAVAILABLE, TwirpErrorCode.UNAUTHENTICATED, TwirpErrorCode.PERMISSION_DENIED],
    )
    def test_unavailable_codes(self, code):
        error = twirp_to_app_error(TwirpError(code, "nope", status=503), "start recording")

        assert error.errcode == AppErrorCode.E_DEPENDENCY_UNAVAILABLE
        assert error.status_code == 503
        assert error.errmesg == "Failed to start recording: nope"

    def test_other_codes(self):
        error = twirp_to_app_error(
            TwirpError(TwirpErrorCode.INTERNAL, "boom", status=500), "stop recording"
        )

        assert error.errcode == AppErrorCode.E_DEPENDENCY_FAILURE
        assert error.status_code == 502


class TestLivekitService:
    def test_configuration_flags(self, configured_service, unconfigured_service):
        assert configured_service.is_configured is True
        assert configured_service.server_url == "wss://rtc.example.test"
        assert unconfigured_service.is_configured is False

    async def test_create_access_token(self, configured_service):
        # Act
        token = await configured_service.create_access_token(
            identity="Bob",
            room="alice-room",
            can_publish=False,
        )

        # Assert
        claims = api.TokenVerifier(API_KEY, API_SECRET).verify(token)
        assert claims.identity == "Bob"
        assert claims.video.room == "alice-room"
        assert claims.video.room_join is True
        assert claims.video.can_publish is False
        assert claims.video.can_subscribe is True

    async def test_create_access_token_unconfigured(self, unconfigured_service):
        with pytest.raises(AppError) as exc_info:
            await unconfigured_service.create_access_token(identity="Bob", room="alice-room")

        assert exc_info.value.errcode == AppErrorCode.E_DEPENDENCY_UNAVAILABLE
        assert exc_info.value.status_code == 503

    async def test_credential_issuer_uses_grants(self, configured_service):
        issuer = LivekitCredentialIssuer(configured_service)
        verifier = api.TokenVerifier(API_KEY, API_SECRET)

        owner = verifier.verify(await issuer.issue("alice-room", "Alice", OWNER_GRANTS))
        viewer = verifier.verify(await issuer.issue("alice-room", "Bob", VIEWER_GRANTS))

        assert issuer.is_configured is True
        assert owner.video.can_publish is True
        assert viewer.video.can_publish is False
        assert viewer.video.can_publish_data is True


class TestLivekitEgressProvider:
    async def test_start_builds_s3_mp4_request(self, mock_service, destination):
        # Arrange
        mock_service.start_room_composite_egress.return_value = _egress("EG_42")
        provider = LivekitEgressProvider(mock_service, layout="speaker")

        # Act
        job_id = await provider.start("alice-room", destination)

        # Assert
        assert job_id == "EG_42"
        request = mock_service.start_room_composite_egress.call_args.args[0]
        assert request.room_name == "alice-room"
        assert request.layout == "speaker"
        output = request.file_outputs[0]
        assert output.file_type == api.EncodedFileType.MP4
        assert output.filepath == destination.file_path
        assert output.s3.bucket == "rec-bucket"
        assert output.s3.region == "eu-west-1"

    async def test_start_maps_twirp_error(self, mock_service, destination):
        mock_service.start_room_composite_egress.side_effect = TwirpError(
            TwirpErrorCode.RESOURCE_EXHAUSTED, "no egress workers", status=429
        )
        provider = LivekitEgressProvider(mock_service)

        with pytest.raises(AppError) as exc_info:
            await provider.start("alice-room", destination)

        assert exc_info.value.errcode == AppErrorCode.E_DEPENDENCY_FAILURE
        assert "no egress workers" in exc_info.value.errmesg

    async def test_stop_settles_until_terminal(self, mock_service):
        # Arrange
        mock_service.stop_egress.return_value = _egress(status=api.EgressStatus.EGRESS_ENDING)
        mock_service.list_egress.side_effect = [
            [_egress(status=api.EgressStatus.EGRESS_ENDING)],
            [_egress(status=api.EgressStatus.EGRESS_COMPLETE, filename="live-recordings/a/1.mp4")],
        ]
        provider = LivekitEgressProvider(mock_service, settle_seconds=5, poll_interval=0)

        # Act
        info = await provider.stop("EG_1")

        # Assert
        assert info.status == EgressStatus.COMPLETE
        assert info.artifacts == ["live-recordings/a/1.mp4"]
        assert mock_service.list_egress.await_count == 2
        mock_service.list_egress.assert_awaited_with(egress_id="EG_1")

    async def test_stop_already_terminal_skips_polling(self, mock_service):
        mock_service.stop_egress.return_value = _egress(
            status=api.EgressStatus.EGRESS_COMPLETE, filename="f.mp4"
        )
        provider = LivekitEgressProvider(mock_service, poll_interval=0)

        info = await provider.stop("EG_1")

        assert info.status == EgressStatus.COMPLETE
        mock_service.list_egress.assert_not_awaited()

    async def test_stop_gives_up_after_settle_window(self, mock_service):
        mock_service.stop_egress.return_value = _egress(status=api.EgressStatus.EGRESS_ENDING)
        provider = LivekitEgressProvider(mock_service, settle_seconds=0, poll_interval=0)

        info = await provider.stop("EG_1")

        assert info.status == EgressStatus.ENDING

    async def test_stop_maps_twirp_error(self, mock_service):
        mock_service.stop_egress.side_effect = TwirpError(
            TwirpErrorCode.UNAVAILABLE, "media server down", status=503
        )
        provider = LivekitEgressProvider(mock_service)

        with pytest.raises(AppError) as exc_info:
            await provider.stop("EG_1")

        assert exc_info.value.errcode == AppErrorCode.E_DEPENDENCY_UNAVAILABLE

    async def test_list_jobs(self, mock_service):
        mock_service.list_egress.return_value = [_egress("EG_1"), _egress("EG_2")]
        provider = LivekitEgressProvider(mock_service)

        jobs = await provider.list_jobs(room_id="alice-room", active=True)

        assert [job.job_id for job in jobs] == ["EG_1", "EG_2"]
        mock_service.list_egress.assert_awaited_once_with(
            room_name="alice-room", egress_id=None, active=True
        )
