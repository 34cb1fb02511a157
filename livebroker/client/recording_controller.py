"""Client-side recording controller for one room.

Keeps a local, optimistic view of a room's recording and reconciles it with
the server. At most one start/stop request is in flight at a time; calls made
meanwhile are ignored. Failed requests can be retried a bounded number of
times with exponential backoff.
"""

from collections.abc import Awaitable, Callable
from enum import Enum

from loguru import logger

from livebroker.api.v1.schemas.recording import RecordingStatusOut
from livebroker.schemas import RecordingStatus
from livebroker.utils.app_errors import AppError, AppErrorCode, ErrorCategory

from .gateway_client import GatewayClient
from .network_monitor import NetworkMonitor
from .scheduler import Scheduler, TimerHandle

MAX_RETRIES = 3
ERROR_CLEAR_SECONDS = 10.0
TICK_SECONDS = 1.0
STATUS_POLL_SECONDS = 1.0
RETRIES_EXHAUSTED_MESSAGE = "Maximum retry attempts reached. Please try again later."

_RECONCILE_CATEGORIES = {ErrorCategory.CONFLICT, ErrorCategory.NOT_FOUND}


class ControllerState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    ACTIVE = "active"
    RETRYING = "retrying"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


def _server_recording(status: RecordingStatusOut) -> bool:
    """True while the server holds a job for the room or is admitting one."""
    return status.is_recording or status.recording_status == RecordingStatus.STARTING


def format_duration(seconds: int) -> str:
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"


class RecordingController:
    def __init__(
        self,
        room_id: str,
        client: GatewayClient,
        scheduler: Scheduler,
        network: NetworkMonitor | None = None,
    ) -> None:
        self.room_id = room_id
        self.client = client
        self.scheduler = scheduler
        self.network = network

        self.state = ControllerState.IDLE
        self.is_recording = False
        self.job_id: str | None = None
        self.recording_url: str | None = None
        self.duration = 0
        self.retry_count = 0
        self.last_error: AppError | None = None

        self._message: str | None = None
        self._failed_action: Callable[[], Awaitable[None]] | None = None
        self._ticker: TimerHandle | None = None
        self._error_timer: TimerHandle | None = None
        self._retry_timer: TimerHandle | None = None
        self._poll_timer: TimerHandle | None = None

        if network is not None:
            network.add_listener(self._on_network_change)

    # ==================== VIEW ====================

    @property
    def error(self) -> str | None:
        """Message to display, held back while the network is reconnecting."""
        if self.network is not None and self.network.is_reconnecting:
            return None
        return self._message

    @property
    def is_loading(self) -> bool:
        return self.state == ControllerState.REQUESTING

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    @property
    def can_retry(self) -> bool:
        return (
            self.retry_count < MAX_RETRIES
            and self.state == ControllerState.FAILED
            and self.last_error is not None
            and self.last_error.retryable
            and self._failed_action is not None
        )

    # ==================== TIMERS ====================

    def _set_message(self, message: str | None) -> None:
        self._message = message
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        if message is not None:
            self._error_timer = self.scheduler.call_later(ERROR_CLEAR_SECONDS, self._clear_message)

    def _clear_message(self) -> None:
        self._message = None
        self._error_timer = None

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self.duration = 0
        self._ticker = self.scheduler.call_later(TICK_SECONDS, self._tick)

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _tick(self) -> None:
        if self.state != ControllerState.ACTIVE:
            self._ticker = None
            return
        self.duration += 1
        self._ticker = self.scheduler.call_later(TICK_SECONDS, self._tick)

    def _cancel_retry(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    # ==================== STATE ====================

    def _enter_active(self, job_id: str | None) -> None:
        was_active = self.is_recording and self._ticker is not None
        self.state = ControllerState.ACTIVE
        self.is_recording = True
        self.job_id = job_id
        if not was_active:
            self._start_ticker()

    def _enter_idle(self) -> None:
        self.state = ControllerState.IDLE
        self.is_recording = False
        self._stop_ticker()

    def _fail(self, error: AppError, action: Callable[[], Awaitable[None]]) -> None:
        self.state = ControllerState.FAILED
        self.last_error = error
        self._failed_action = action
        self._set_message(error.errmesg)

    def _succeed(self) -> None:
        self.retry_count = 0
        self.last_error = None
        self._failed_action = None
        self._set_message(None)

    @property
    def _busy(self) -> bool:
        return self.state in (ControllerState.REQUESTING, ControllerState.RETRYING)

    def _adopt(self, status: RecordingStatusOut) -> None:
        self.recording_url = status.recording_url or self.recording_url
        if _server_recording(status):
            self._enter_active(status.egress_id)
            if status.recording_status == RecordingStatus.STARTING:
                # No job id until the server's start finishes
                self._schedule_status_poll()
        else:
            self._enter_idle()
            self.job_id = status.egress_id

    def _schedule_status_poll(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
        self._poll_timer = self.scheduler.call_later(STATUS_POLL_SECONDS, self._poll_status)

    async def _poll_status(self) -> None:
        self._poll_timer = None
        await self._reconcile()

    async def refresh(self) -> RecordingStatusOut:
        """Adopt the server's view of this room's recording.

        Local state is left alone while a start/stop is in flight or a retry
        is pending; that request's own outcome decides the state.
        """
        status = await self.client.recording_status(self.room_id)
        if self._busy:
            logger.debug(f"Not adopting recording state of {self.room_id} while {self.state}")
            return status
        self._adopt(status)
        logger.debug(f"Recording state of {self.room_id} refreshed: {self.state}")
        return status

    async def _fetch_status(self) -> RecordingStatusOut | None:
        try:
            return await self.client.recording_status(self.room_id)
        except AppError as e:
            logger.warning(f"Could not refresh recording state of {self.room_id}: {e.errmesg}")
            return None

    async def _reconcile(self) -> None:
        if self._busy:
            return
        try:
            await self.refresh()
        except AppError as e:
            logger.warning(f"Could not refresh recording state of {self.room_id}: {e.errmesg}")

    def _on_network_change(self, monitor: NetworkMonitor) -> None:
        if monitor.is_reconnecting and self.state in (ControllerState.IDLE, ControllerState.ACTIVE):
            self.scheduler.call_later(0, self._reconcile)

    # ==================== ACTIONS ====================

    async def start_recording(self) -> None:
        if self.state == ControllerState.REQUESTING or self.is_recording:
            return

        self._cancel_retry()
        self.state = ControllerState.REQUESTING
        self._set_message(None)

        try:
            result = await self.client.start_recording(self.room_id)
        except AppError as e:
            logger.warning(f"Start recording failed for {self.room_id}: {e.errcode} {e.errmesg}")
            if e.category in _RECONCILE_CATEGORIES:
                status = await self._fetch_status()
                if status is not None and _server_recording(status):
                    self._adopt(status)
                    self._succeed()
                    return
            self._fail(e, self.start_recording)
            return

        self._enter_active(result.egress_id)
        self._succeed()

    async def stop_recording(self) -> None:
        if self.state == ControllerState.REQUESTING or not self.is_recording or not self.job_id:
            return

        self._cancel_retry()
        self.state = ControllerState.REQUESTING
        self._set_message(None)

        try:
            result = await self.client.stop_recording(self.job_id)
        except AppError as e:
            logger.warning(f"Stop recording failed for {self.room_id}: {e.errcode} {e.errmesg}")
            if e.category in _RECONCILE_CATEGORIES:
                status = await self._fetch_status()
                if status is not None and not _server_recording(status):
                    self._adopt(status)
                    self._succeed()
                    return
            self._fail(e, self.stop_recording)
            return

        # A stop always leaves the room not recording, even when the recording failed
        self._enter_idle()
        self._succeed()
        self.recording_url = result.s3_url
        if result.status != RecordingStatus.COMPLETED:
            self._set_message(result.error or "Recording stopped with errors")

    async def toggle_recording(self) -> None:
        if self.is_recording:
            await self.stop_recording()
        else:
            await self.start_recording()

    def retry(self) -> bool:
        """Schedule the last failed action again after 1s, 2s, then 4s.

        Returns False when nothing was scheduled: the error cannot be retried
        or the attempts are used up, and while a request is in flight or a
        retry is already pending.
        """
        if self._busy:
            return False

        if self.retry_count >= MAX_RETRIES:
            self.state = ControllerState.FAILED
            self.last_error = AppError(
                errcode=AppErrorCode.E_RETRIES_EXHAUSTED,
                errmesg=RETRIES_EXHAUSTED_MESSAGE,
            )
            self._failed_action = None
            self._set_message(RETRIES_EXHAUSTED_MESSAGE)
            return False

        if not self.can_retry or self._failed_action is None:
            return False

        delay = 2**self.retry_count
        self.retry_count += 1
        self.state = ControllerState.RETRYING
        self._set_message(f"Retrying in {delay} seconds... ({self.retry_count}/{MAX_RETRIES})")

        action = self._failed_action
        self._cancel_retry()
        self._retry_timer = self.scheduler.call_later(delay, lambda: self._run_retry(action))
        return True

    async def _run_retry(self, action: Callable[[], Awaitable[None]]) -> None:
        self._retry_timer = None
        if self.state != ControllerState.RETRYING:
            return
        # Let the action through the in-flight guard
        self.state = ControllerState.FAILED
        await action()

    def close(self) -> None:
        self._stop_ticker()
        self._cancel_retry()
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        if self.network is not None:
            self.network.remove_listener(self._on_network_change)
