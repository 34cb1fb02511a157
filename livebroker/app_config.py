from enum import Enum

from loguru import logger
from pydantic import BaseModel

from livebroker.shared.config import config


def _str_or_none(key: str) -> str | None:
    return (config.get(key) or "").strip() or None


def _int(key: str, default: int) -> int:
    return int((config.get(key) or "").strip() or default)


def _flag(key: str, default: str) -> bool:
    return config.get(key, default).strip().lower() == "true"


class ViewerJoinPolicy(str, Enum):
    """How token issuance treats viewers asking to join a room the registry does not know.

    PERMISSIVE favors availability: the viewer gets a credential anyway.
    STRICT requires the room to exist.
    """

    PERMISSIVE = "permissive"
    STRICT = "strict"


def parse_viewer_join_policy(value: str | None) -> ViewerJoinPolicy:
    """Unknown or empty values fall back to PERMISSIVE."""
    raw = (value or "").strip().lower()
    if not raw:
        return ViewerJoinPolicy.PERMISSIVE
    try:
        return ViewerJoinPolicy(raw)
    except ValueError:
        logger.warning(
            f"Unknown VIEWER_JOIN_POLICY {value!r}, expected one of "
            f"{[p.value for p in ViewerJoinPolicy]}; using {ViewerJoinPolicy.PERMISSIVE.value}"
        )
        return ViewerJoinPolicy.PERMISSIVE


class AppEnvironConfig(BaseModel):
    DEBUG: bool = _flag("DEBUG", "false")

    API_HOST: str = config.get("API_HOST", "0.0.0.0").strip()
    API_PORT: int = _int("API_PORT", 3001)
    API_WORKERS: int = _int("API_WORKERS", 1)
    API_CORS_ORIGINS: list[str] = [
        x.strip() for x in config.get("API_CORS_ORIGINS", "*").split(",") if x.strip()
    ]

    # LiveKit configuration
    LIVEKIT_URL: str | None = _str_or_none("LIVEKIT_URL")
    LIVEKIT_API_KEY: str | None = _str_or_none("LIVEKIT_API_KEY")
    LIVEKIT_API_SECRET: str | None = _str_or_none("LIVEKIT_API_SECRET")
    LIVEKIT_TOKEN_TTL_SECONDS: int = _int("LIVEKIT_TOKEN_TTL_SECONDS", 6 * 60 * 60)

    # AWS S3 configuration (recording destination)
    AWS_ACCESS_KEY_ID: str | None = _str_or_none("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str | None = _str_or_none("AWS_SECRET_ACCESS_KEY")
    S3_BUCKET_NAME: str | None = _str_or_none("S3_BUCKET_NAME")
    S3_REGION: str = config.get("S3_REGION", "us-east-1").strip() or "us-east-1"

    # Recording configuration
    RECORDING_PATH_PREFIX: str = config.get("RECORDING_PATH_PREFIX", "live-recordings").strip()
    RECORDING_LAYOUT: str = config.get("RECORDING_LAYOUT", "grid").strip()
    EGRESS_REQUEST_TIMEOUT_SECONDS: int = _int("EGRESS_REQUEST_TIMEOUT_SECONDS", 30)
    # How long a stop waits for the provider to report a terminal status
    EGRESS_STOP_SETTLE_SECONDS: int = _int("EGRESS_STOP_SETTLE_SECONDS", 20)

    # Frontend configuration
    FRONTEND_URL: str = config.get("FRONTEND_URL", "http://localhost:5173").strip()

    VIEWER_JOIN_POLICY: ViewerJoinPolicy = parse_viewer_join_policy(
        config.get("VIEWER_JOIN_POLICY", "permissive")
    )

    LOGFIRE_ENABLE: bool = _flag("LOGFIRE_ENABLE", "false")
    LOGFIRE_TOKEN: str | None = _str_or_none("LOGFIRE_TOKEN")

    @property
    def livekit_configured(self) -> bool:
        return bool(self.LIVEKIT_URL and self.LIVEKIT_API_KEY and self.LIVEKIT_API_SECRET)

    @property
    def s3_configured(self) -> bool:
        return bool(self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY and self.S3_BUCKET_NAME)

    @property
    def recording_configured(self) -> bool:
        return self.livekit_configured and self.s3_configured


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
