"""Recording endpoints: start, stop and inspect room recordings."""

from fastapi import APIRouter, Depends, Path, Query

from livebroker.api.v1.dependency import get_session_gateway
from livebroker.api.v1.schemas.base import ApiOut
from livebroker.api.v1.schemas.recording import (
    ListRecordingJobsOut,
    RecordingJobOut,
    RecordingStatusOut,
    StartRecordingIn,
    StartRecordingOut,
    StopRecordingIn,
    StopRecordingOut,
)
from livebroker.domain.live.session import SessionGateway
from livebroker.schemas import RecordingStatus

router = APIRouter(prefix="/recordings", tags=["recordings"])


@router.post("/start", status_code=201)
async def start_recording(
    body: StartRecordingIn,
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[StartRecordingOut]:
    """Start recording a room to S3.

    Raises:
        400: Invalid room_name
        404: Room not found
        409: Recording already in progress
        410: Room has ended
        502: Recording provider failed
        503: Recording not configured
        504: Recording provider timed out
    """
    result = await gateway.start_recording(body.room_name)
    return ApiOut[StartRecordingOut](
        results=StartRecordingOut(
            egress_id=result.job_id,
            room_name=result.room_id,
            file_path=result.file_path,
            status=result.status,
            message="Recording started",
        )
    )


@router.post("/stop")
async def stop_recording(
    body: StopRecordingIn,
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[StopRecordingOut]:
    """Stop a recording.

    A provider failure is reported as `status=failed` with a reason; the room
    is no longer recording either way.

    Raises:
        400: Invalid egress_id
        404: Recording not found
        409: Recording is not active
        503: Recording not configured
    """
    result = await gateway.stop_recording(body.egress_id)
    completed = result.status == RecordingStatus.COMPLETED
    return ApiOut[StopRecordingOut](
        results=StopRecordingOut(
            egress_id=result.job_id,
            s3_url=result.destination,
            status=result.status,
            error=result.reason,
            message="Recording stopped" if completed else "Recording stopped with errors",
        )
    )


@router.get("/{room_id}")
async def recording_status(
    room_id: str = Path(..., description="Room ID"),
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[RecordingStatusOut]:
    """Recording state of a room as known to this server.

    Raises:
        404: Room not found
    """
    view = await gateway.recording_status(room_id)
    return ApiOut[RecordingStatusOut](
        results=RecordingStatusOut(
            room_id=view.room_id,
            is_recording=view.recording_active,
            recording_status=view.recording_status,
            egress_id=view.job_id,
            recording_url=view.destination,
            host_name=view.owner_identity,
            is_active=view.is_active,
        )
    )


@router.get("/{room_id}/jobs")
async def list_recording_jobs(
    room_id: str = Path(..., description="Room ID"),
    active: bool | None = Query(default=None, description="Only jobs still running"),
    gateway: SessionGateway = Depends(get_session_gateway),
) -> ApiOut[ListRecordingJobsOut]:
    """Recording jobs the provider reports for a room. Diagnostic only.

    Raises:
        404: Room not found
        502: Recording provider failed
        503: Recording not configured
    """
    jobs = await gateway.recording_jobs(room_id, active=active)
    return ApiOut[ListRecordingJobsOut](
        results=ListRecordingJobsOut(
            room_id=room_id,
            jobs=[
                RecordingJobOut(
                    egress_id=job.job_id,
                    room_name=job.room_id,
                    status=job.status,
                    files=job.artifacts,
                    error=job.error,
                    started_at=job.started_at,
                    ended_at=job.ended_at,
                )
                for job in jobs
            ],
        )
    )
