import asyncio
import inspect
import itertools
import os
from collections.abc import Callable
from typing import Any

import pytest

# Keep tests independent of a developer's env.local
os.environ.update(
    {
        "DEBUG": "false",
        "LOGFIRE_ENABLE": "false",
    }
)

from livebroker.app_config import ViewerJoinPolicy  # noqa: E402
from livebroker.domain.live.recording import (  # noqa: E402
    DestinationSpec,
    EgressJobInfo,
    RecordingCoordinator,
    RecordingStorage,
)
from livebroker.domain.live.room import RoomRegistry  # noqa: E402
from livebroker.domain.live.session import ParticipantGrants, SessionGateway  # noqa: E402
from livebroker.schemas import EgressStatus  # noqa: E402


class FakeEgressProvider:
    """In-memory egress provider.

    `start_gate`, when set, holds every start until the event is set.
    """

    def __init__(self) -> None:
        self.configured = True
        self.started: list[tuple[str, DestinationSpec]] = []
        self.stopped: list[str] = []
        self.start_error: Exception | None = None
        self.start_gate: asyncio.Event | None = None
        self.stop_error: Exception | None = None
        self.stop_status = EgressStatus.COMPLETE
        self.stop_artifacts: list[str] | None = None
        self.jobs: list[EgressJobInfo] = []
        self.file_paths: dict[str, str] = {}
        self._ids = itertools.count(1)

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def start(self, room_id: str, destination: DestinationSpec) -> str:
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        job_id = f"EG_{next(self._ids)}"
        self.started.append((room_id, destination))
        self.file_paths[job_id] = destination.file_path
        self.jobs.append(
            EgressJobInfo(job_id=job_id, room_id=room_id, status=EgressStatus.ACTIVE)
        )
        return job_id

    async def stop(self, job_id: str) -> EgressJobInfo:
        self.stopped.append(job_id)
        if self.stop_error is not None:
            raise self.stop_error
        if self.stop_artifacts is not None:
            artifacts = self.stop_artifacts
        else:
            artifacts = [self.file_paths.get(job_id, "")]
        return EgressJobInfo(job_id=job_id, status=self.stop_status, artifacts=artifacts)

    async def list_jobs(self, room_id=None, job_id=None, active=None) -> list[EgressJobInfo]:
        return [
            job
            for job in self.jobs
            if (room_id is None or job.room_id == room_id)
            and (job_id is None or job.job_id == job_id)
        ]


class FakeCredentialIssuer:
    def __init__(self) -> None:
        self.configured = True
        self.server_url = "wss://rtc.example.test"
        self.issued: list[tuple[str, str, ParticipantGrants]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def issue(self, room_id: str, identity: str, grants: ParticipantGrants) -> str:
        self.issued.append((room_id, identity, grants))
        return f"token::{identity}::{room_id}::{'pub' if grants.can_publish else 'sub'}"


class ManualHandle:
    def __init__(self, when: float, seq: int, callback: Callable[[], Any]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler with virtual time; `advance()` runs due callbacks in order."""

    def __init__(self) -> None:
        self._now = 0.0
        self._timers: list[ManualHandle] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ManualHandle:
        handle = ManualHandle(self._now + delay, next(self._seq), callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self._now = timer.when
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self._now = target


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def provider() -> FakeEgressProvider:
    return FakeEgressProvider()


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage(
        bucket="rec-bucket",
        region="eu-west-1",
        access_key="AKIATEST",
        secret="secret",
    )


@pytest.fixture
def coordinator(
    registry: RoomRegistry, provider: FakeEgressProvider, storage: RecordingStorage
) -> RecordingCoordinator:
    return RecordingCoordinator(registry, provider, storage, request_timeout=1)


@pytest.fixture
def issuer() -> FakeCredentialIssuer:
    return FakeCredentialIssuer()


@pytest.fixture
def gateway(
    registry: RoomRegistry,
    coordinator: RecordingCoordinator,
    issuer: FakeCredentialIssuer,
) -> SessionGateway:
    return SessionGateway(
        registry,
        coordinator,
        issuer,
        frontend_url="http://localhost:5173",
        viewer_join_policy=ViewerJoinPolicy.PERMISSIVE,
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
