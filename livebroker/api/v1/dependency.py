from livebroker.app_config import AppEnvironConfig, get_app_environ_config
from livebroker.domain.live.recording import RecordingCoordinator, RecordingStorage
from livebroker.domain.live.room import RoomRegistry
from livebroker.domain.live.session import SessionGateway
from livebroker.services.integrations.livekit_service import (
    livekit_credential_issuer,
    livekit_egress_provider,
)

_session_gateway: SessionGateway | None = None


def build_session_gateway(cfg: AppEnvironConfig) -> SessionGateway:
    registry = RoomRegistry()
    coordinator = RecordingCoordinator(
        registry,
        livekit_egress_provider,
        RecordingStorage.from_config(cfg),
        request_timeout=cfg.EGRESS_REQUEST_TIMEOUT_SECONDS,
        stop_timeout=cfg.EGRESS_REQUEST_TIMEOUT_SECONDS + cfg.EGRESS_STOP_SETTLE_SECONDS,
    )
    return SessionGateway(
        registry,
        coordinator,
        livekit_credential_issuer,
        frontend_url=cfg.FRONTEND_URL,
        viewer_join_policy=cfg.VIEWER_JOIN_POLICY,
    )


def get_session_gateway() -> SessionGateway:
    """Process-wide gateway; rooms live as long as the process."""
    global _session_gateway
    if _session_gateway is None:
        _session_gateway = build_session_gateway(get_app_environ_config())
    return _session_gateway
