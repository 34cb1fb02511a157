"""Async HTTP client for the livebroker API."""

from typing import Any, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel

from livebroker.api.v1.schemas.recording import (
    ListRecordingJobsOut,
    RecordingStatusOut,
    StartRecordingOut,
    StopRecordingOut,
)
from livebroker.api.v1.schemas.room import CreateRoomOut, EndRoomOut, GetRoomOut, IssueTokenOut
from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

M = TypeVar("M", bound=BaseModel)

DEFAULT_TIMEOUT_SECONDS = 10.0


class GatewayClient:
    """Typed wrapper over the HTTP surface.

    Every call is bounded by `timeout`. Failures are raised as AppError:
    the server's own error code when it answered, E_TIMEOUT when it did not
    answer in time, and E_NETWORK_ERROR when it could not be reached.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out after {self.timeout}s")
            raise AppError(
                errcode=AppErrorCode.E_TIMEOUT,
                errmesg="Request timed out. Please try again.",
                status_code=HttpStatusCode.GATEWAY_TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise AppError(
                errcode=AppErrorCode.E_NETWORK_ERROR,
                errmesg="Network error. Check your connection and try again.",
                status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Unexpected response from server (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if response.is_error or data.get("success") is False:
            raise AppError(
                errcode=AppErrorCode.parse(data.get("errcode")),
                errmesg=data.get("errmesg") or f"Request failed (HTTP {response.status_code})",
                status_code=response.status_code,
                erresid=data.get("erresid"),
            )

        return data.get("results")

    async def _call(
        self, model: type[M], method: str, path: str, json: dict | None = None
    ) -> M:
        return model.model_validate(await self._request(method, path, json=json))

    async def health(self) -> bool:
        return await self._request("GET", "/health") == "OK"

    async def create_room(self, host_name: str) -> CreateRoomOut:
        return await self._call(CreateRoomOut, "POST", "/api/v1/rooms", {"host_name": host_name})

    async def get_room(self, room_id: str) -> GetRoomOut:
        return await self._call(GetRoomOut, "GET", f"/api/v1/rooms/{room_id}")

    async def end_room(self, room_id: str) -> EndRoomOut:
        return await self._call(EndRoomOut, "DELETE", f"/api/v1/rooms/{room_id}")

    async def issue_token(
        self, room_name: str, participant_name: str, is_host: bool = False
    ) -> IssueTokenOut:
        body = {"room_name": room_name, "participant_name": participant_name, "is_host": is_host}
        return await self._call(IssueTokenOut, "POST", "/api/v1/token", body)

    async def start_recording(self, room_name: str) -> StartRecordingOut:
        body = {"room_name": room_name}
        return await self._call(StartRecordingOut, "POST", "/api/v1/recordings/start", body)

    async def stop_recording(self, egress_id: str) -> StopRecordingOut:
        body = {"egress_id": egress_id}
        return await self._call(StopRecordingOut, "POST", "/api/v1/recordings/stop", body)

    async def recording_status(self, room_id: str) -> RecordingStatusOut:
        return await self._call(RecordingStatusOut, "GET", f"/api/v1/recordings/{room_id}")

    async def list_recording_jobs(self, room_id: str) -> ListRecordingJobsOut:
        return await self._call(ListRecordingJobsOut, "GET", f"/api/v1/recordings/{room_id}/jobs")
