"""Recording destination naming and artifact URLs."""

from livebroker.app_config import AppEnvironConfig

from .recording_models import DestinationSpec


class RecordingStorage:
    """S3 bucket that recordings are uploaded to."""

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key: str,
        secret: str,
        path_prefix: str = "live-recordings",
    ) -> None:
        self.bucket = bucket
        self.region = region
        self._access_key = access_key
        self._secret = secret
        self.path_prefix = path_prefix.strip("/")

    @classmethod
    def from_config(cls, cfg: AppEnvironConfig) -> "RecordingStorage | None":
        """Build from configuration, or None when S3 is not configured."""
        if not cfg.s3_configured:
            return None
        return cls(
            bucket=cfg.S3_BUCKET_NAME,  # type: ignore[arg-type]
            region=cfg.S3_REGION,
            access_key=cfg.AWS_ACCESS_KEY_ID,  # type: ignore[arg-type]
            secret=cfg.AWS_SECRET_ACCESS_KEY,  # type: ignore[arg-type]
            path_prefix=cfg.RECORDING_PATH_PREFIX,
        )

    def file_path(self, room_id: str, epoch_ms: int) -> str:
        """Relative object path, unique per room and start time."""
        return f"{self.path_prefix}/{room_id}/{epoch_ms}.mp4"

    def destination_for(self, room_id: str, epoch_ms: int) -> DestinationSpec:
        return DestinationSpec(
            bucket=self.bucket,
            region=self.region,
            access_key=self._access_key,
            secret=self._secret,
            file_path=self.file_path(room_id, epoch_ms),
        )

    def object_url(self, artifact: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{artifact.lstrip('/')}"
