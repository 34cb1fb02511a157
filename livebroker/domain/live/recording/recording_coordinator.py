"""Recording lifecycle for rooms.

The coordinator owns the recording sub-state of every room. Starts and stops
are admitted under the room's lock by moving the room into an intermediate
STARTING/STOPPING phase; the provider call itself runs outside the lock, so a
racing second start or stop sees the intermediate phase and fails fast.

Start and stop run as detached tasks: a caller that goes away after the
request was admitted does not cancel the provider call or the state update.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from livebroker.domain.utils.timeutils import dt_to_ms, utc_now
from livebroker.schemas import (
    EgressStatus,
    RecordingActive,
    RecordingCompleted,
    RecordingFailed,
    RecordingPhase,
    RecordingStarting,
    RecordingStatus,
    RecordingStopping,
    Room,
)
from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .recording_destination import RecordingStorage
from .recording_models import (
    EgressJobInfo,
    EgressProvider,
    RecordingStartResult,
    RecordingStatusView,
    RecordingStopResult,
)
from .recording_state_machine import RecordingStateMachine

if TYPE_CHECKING:
    from livebroker.domain.live.room import RoomRegistry

T = TypeVar("T")


class RecordingCoordinator:
    """Start, stop and report recordings of rooms held by a RoomRegistry."""

    def __init__(
        self,
        registry: RoomRegistry,
        provider: EgressProvider,
        storage: RecordingStorage | None,
        request_timeout: float = 30,
        stop_timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.storage = storage
        self._request_timeout = request_timeout
        self._stop_timeout = stop_timeout or request_timeout
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()

    @property
    def available(self) -> bool:
        return self.storage is not None and self.provider.is_configured

    def _ensure_available(self) -> RecordingStorage:
        if self.storage is None or not self.provider.is_configured:
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_UNAVAILABLE,
                errmesg="Recording service not available. Check LiveKit and S3 configuration.",
                status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
            )
        return self.storage

    async def _detached(self, coro: Awaitable[T]) -> T:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return await asyncio.shield(task)

    async def wait_idle(self) -> None:
        """Wait for detached start/stop operations to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ==================== START ====================

    async def start_recording(self, room_id: str) -> RecordingStartResult:
        """Start recording a room.

        Raises:
            AppError: E_DEPENDENCY_UNAVAILABLE, E_ROOM_NOT_FOUND, E_ROOM_ENDED,
                E_ALREADY_RECORDING, or the provider failure (E_DEPENDENCY_FAILURE,
                E_TIMEOUT). A failed start leaves the room as it was.
        """
        storage = self._ensure_available()
        return await self._detached(self._start(room_id, storage))

    async def _start(self, room_id: str, storage: RecordingStorage) -> RecordingStartResult:
        requested_at = self._clock()
        destination = storage.destination_for(room_id, dt_to_ms(requested_at))

        def admit(room: Room) -> RecordingPhase:
            if not room.active:
                raise AppError(
                    errcode=AppErrorCode.E_ROOM_ENDED,
                    errmesg="Room has ended",
                    status_code=HttpStatusCode.GONE,
                )
            if not RecordingStateMachine.can_start(room.recording_status):
                raise AppError(
                    errcode=AppErrorCode.E_ALREADY_RECORDING,
                    errmesg="Recording already in progress",
                    status_code=HttpStatusCode.CONFLICT,
                )
            return RecordingStarting(file_path=destination.file_path, requested_at=requested_at)

        admitted = await self.registry.update_recording(room_id, admit)
        if admitted is None:
            raise AppError(
                errcode=AppErrorCode.E_ROOM_NOT_FOUND,
                errmesg="Room not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        previous = admitted[0].recording

        logger.info(f"Starting recording for room={room_id} file_path={destination.file_path}")
        try:
            async with asyncio.timeout(self._request_timeout):
                job_id = await self.provider.start(room_id, destination)
        except TimeoutError as e:
            await self._leave_starting(room_id, previous)
            raise AppError(
                errcode=AppErrorCode.E_TIMEOUT,
                errmesg=f"Recording provider did not respond within {self._request_timeout}s",
                status_code=HttpStatusCode.GATEWAY_TIMEOUT,
            ) from e
        except AppError:
            await self._leave_starting(room_id, previous)
            raise
        except Exception as e:
            await self._leave_starting(room_id, previous)
            logger.exception(f"Failed to start recording for room={room_id}")
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_FAILURE,
                errmesg=f"Failed to start recording: {e}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from e

        started_at = self._clock()
        await self._leave_starting(
            room_id,
            RecordingActive(job_id=job_id, file_path=destination.file_path, started_at=started_at),
        )
        logger.info(f"Recording started: room={room_id} job_id={job_id}")

        return RecordingStartResult(
            job_id=job_id,
            room_id=room_id,
            file_path=destination.file_path,
            status=RecordingStatus.STARTING,
        )

    async def _leave_starting(self, room_id: str, phase: RecordingPhase) -> None:
        def transition(room: Room) -> RecordingPhase:
            if room.recording_status != RecordingStatus.STARTING:
                logger.warning(
                    f"Room {room_id} left STARTING unexpectedly, now {room.recording_status}"
                )
                return room.recording
            return phase

        await self.registry.update_recording(room_id, transition)

    # ==================== STOP ====================

    async def stop_recording(self, job_id: str) -> RecordingStopResult:
        """Stop a recording job.

        Always leaves the owning room not recording. Provider failures are
        reported as a FAILED result, not raised.

        Raises:
            AppError: E_DEPENDENCY_UNAVAILABLE, E_JOB_NOT_FOUND, E_JOB_NOT_ACTIVE
        """
        self._ensure_available()
        return await self._detached(self._stop(job_id))

    async def _stop(self, job_id: str) -> RecordingStopResult:
        owner = await self.registry.find_by_job_id(job_id)
        if owner is None:
            raise AppError(
                errcode=AppErrorCode.E_JOB_NOT_FOUND,
                errmesg="Recording not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        room_id = owner.id

        def admit(room: Room) -> RecordingPhase:
            if room.recording_job_id != job_id or not RecordingStateMachine.can_stop(
                room.recording_status
            ):
                raise AppError(
                    errcode=AppErrorCode.E_JOB_NOT_ACTIVE,
                    errmesg="No active recording",
                    status_code=HttpStatusCode.CONFLICT,
                )
            current: RecordingActive = room.recording  # type: ignore[assignment]
            return RecordingStopping(
                job_id=job_id, file_path=current.file_path, started_at=current.started_at
            )

        admitted = await self.registry.update_recording(room_id, admit)
        if admitted is None:
            raise AppError(
                errcode=AppErrorCode.E_JOB_NOT_FOUND,
                errmesg="Recording not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )

        logger.info(f"Stopping recording: room={room_id} job_id={job_id}")
        try:
            async with asyncio.timeout(self._stop_timeout):
                info = await self.provider.stop(job_id)
            outcome = self._interpret(job_id, info)
        except TimeoutError:
            logger.error(f"Recording stop timed out: room={room_id} job_id={job_id}")
            outcome = RecordingFailed(
                job_id=job_id,
                reason=f"Recording provider did not respond within {self._stop_timeout}s",
                ended_at=self._clock(),
            )
        except AppError as e:
            logger.error(f"Recording stop failed: room={room_id} job_id={job_id} error={e.errmesg}")
            outcome = RecordingFailed(job_id=job_id, reason=e.errmesg, ended_at=self._clock())
        except Exception as e:
            logger.exception(f"Recording stop failed: room={room_id} job_id={job_id}")
            outcome = RecordingFailed(
                job_id=job_id, reason=str(e) or type(e).__name__, ended_at=self._clock()
            )

        await self.registry.update_recording(room_id, lambda _room: outcome)

        if isinstance(outcome, RecordingCompleted):
            logger.info(f"Recording completed: room={room_id} url={outcome.destination}")
            return RecordingStopResult(
                job_id=job_id,
                room_id=room_id,
                status=RecordingStatus.COMPLETED,
                destination=outcome.destination,
            )

        logger.warning(f"Recording failed: room={room_id} reason={outcome.reason}")
        return RecordingStopResult(
            job_id=job_id,
            room_id=room_id,
            status=RecordingStatus.FAILED,
            reason=outcome.reason,
        )

    def _interpret(self, job_id: str, info: EgressJobInfo) -> RecordingCompleted | RecordingFailed:
        ended_at = self._clock()
        if info.status == EgressStatus.COMPLETE and info.artifacts and self.storage:
            return RecordingCompleted(
                job_id=job_id,
                destination=self.storage.object_url(info.artifacts[0]),
                ended_at=ended_at,
            )

        if info.status == EgressStatus.COMPLETE:
            reason = "Recording completed without producing a file"
        else:
            reason = f"Recording failed with status: {info.status.value.upper()}"
        if info.error:
            reason = f"{reason} ({info.error})"
        return RecordingFailed(job_id=job_id, reason=reason, ended_at=ended_at)

    # ==================== QUERIES ====================

    async def status(self, room_id: str) -> RecordingStatusView:
        """Recording state of a room as held by the registry. Never calls the provider."""
        room = await self.registry.get(room_id)
        if room is None:
            raise AppError(
                errcode=AppErrorCode.E_ROOM_NOT_FOUND,
                errmesg="Room not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return RecordingStatusView(
            room_id=room.id,
            owner_identity=room.owner_identity,
            is_active=room.active,
            recording_active=room.recording_active,
            recording_status=room.recording_status,
            job_id=room.recording_job_id,
            destination=room.recording_destination,
        )

    async def list_jobs(self, room_id: str, active: bool | None = None) -> list[EgressJobInfo]:
        """Ask the provider for the jobs it knows about for a room.

        Diagnostic only; the result never feeds back into room state.
        """
        self._ensure_available()
        if await self.registry.get(room_id) is None:
            raise AppError(
                errcode=AppErrorCode.E_ROOM_NOT_FOUND,
                errmesg="Room not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )

        try:
            async with asyncio.timeout(self._request_timeout):
                return await self.provider.list_jobs(room_id=room_id, active=active)
        except TimeoutError as e:
            raise AppError(
                errcode=AppErrorCode.E_TIMEOUT,
                errmesg=f"Recording provider did not respond within {self._request_timeout}s",
                status_code=HttpStatusCode.GATEWAY_TIMEOUT,
            ) from e
        except AppError:
            raise
        except Exception as e:
            logger.exception(f"Failed to list recordings for room={room_id}")
            raise AppError(
                errcode=AppErrorCode.E_DEPENDENCY_FAILURE,
                errmesg=f"Failed to list recordings: {e}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from e
