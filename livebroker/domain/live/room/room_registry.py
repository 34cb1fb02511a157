"""In-memory room registry.

The registry is the single source of truth for whether a room is active and
what its recording phase is. Every mutation of a room happens under that
room's lock; the map itself is guarded by a separate lock so rooms never
contend with each other. Callers only ever receive copies of rooms.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from loguru import logger

from livebroker.domain.live.recording.recording_state_machine import RecordingStateMachine
from livebroker.domain.utils.idgen import new_room_id
from livebroker.domain.utils.timeutils import utc_now
from livebroker.schemas import RecordingCompleted, RecordingPhase, Room
from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

RecordingTransition = Callable[[Room], RecordingPhase]


class RoomRegistry:
    """Authoritative mapping of room id to room state."""

    def __init__(
        self,
        id_factory: Callable[[], str] = new_room_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._id_factory = id_factory
        self._clock = clock
        self._rooms: dict[str, Room] = {}
        self._room_locks: dict[str, asyncio.Lock] = {}
        self._map_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    async def create(self, owner_identity: str) -> Room:
        """Store a new active, non-recording room under a fresh unique id."""
        async with self._map_lock:
            room_id = self._id_factory()
            while room_id in self._rooms:
                logger.warning(f"Room id collision on {room_id}, generating another")
                room_id = self._id_factory()

            room = Room(id=room_id, owner_identity=owner_identity, created_at=self._clock())
            self._rooms[room_id] = room
            self._room_locks[room_id] = asyncio.Lock()
            total = len(self._rooms)

        logger.info(f"Room created: room_id={room_id} owner={owner_identity} total_rooms={total}")
        return room.model_copy(deep=True)

    async def get(self, room_id: str) -> Room | None:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def list_rooms(self) -> list[Room]:
        async with self._map_lock:
            return [room.model_copy(deep=True) for room in self._rooms.values()]

    async def find_by_job_id(self, job_id: str) -> Room | None:
        """Find the room whose current or last recording job is `job_id`."""
        async with self._map_lock:
            rooms = list(self._rooms.values())

        for room in rooms:
            if room.recording_job_id == job_id:
                return room.model_copy(deep=True)
        return None

    @asynccontextmanager
    async def _locked(self, room_id: str) -> AsyncIterator[Room | None]:
        lock = self._room_locks.get(room_id)
        if lock is None:
            yield None
            return

        async with lock:
            yield self._rooms.get(room_id)

    async def end(self, room_id: str) -> Room | None:
        """Mark a room inactive.

        Ending an already ended room is a no-op. Returns None when the room
        does not exist.
        """
        async with self._locked(room_id) as room:
            if room is None:
                return None

            if room.active:
                room.active = False
                room.ended_at = self._clock()
                logger.info(f"Room ended: room_id={room_id}")
            else:
                logger.info(f"Room already ended: room_id={room_id}")

            return room.model_copy(deep=True)

    async def update_recording(
        self, room_id: str, transition: RecordingTransition
    ) -> tuple[Room, Room] | None:
        """Atomically compute and apply a new recording phase for a room.

        `transition` receives a copy of the current room and returns the new
        phase, or raises to leave the room untouched. Runs under the room's
        lock so the check and the mutation cannot interleave with another
        update of the same room. Returning the current phase is a no-op.

        Returns:
            (before, after) copies, or None when the room does not exist

        Raises:
            AppError: E_INVALID_TRANSITION if the new phase is not reachable
                from the current one
        """
        async with self._locked(room_id) as room:
            if room is None:
                return None

            before = room.model_copy(deep=True)
            new_phase = transition(before.model_copy(deep=True))

            if new_phase == room.recording:
                return before, room.model_copy(deep=True)

            if not RecordingStateMachine.can_transition(room.recording_status, new_phase.kind):
                valid = RecordingStateMachine.get_valid_transitions(room.recording_status)
                allowed = sorted(str(s) for s in valid)
                raise AppError(
                    errcode=AppErrorCode.E_INVALID_TRANSITION,
                    errmesg=(
                        f"Invalid recording transition: {room.recording_status} -> {new_phase.kind}"
                        f" (allowed: {', '.join(allowed)})"
                    ),
                    status_code=HttpStatusCode.CONFLICT,
                )

            room.recording = new_phase
            if isinstance(new_phase, RecordingCompleted):
                room.recording_destination = new_phase.destination

            logger.debug(
                f"Room {room_id} recording {before.recording_status} -> {room.recording_status}"
            )
            return before, room.model_copy(deep=True)

    async def set_recording_state(self, room_id: str, recording: RecordingPhase) -> Room | None:
        """Set the recording phase of a room, subject to the transition table."""
        result = await self.update_recording(room_id, lambda _room: recording)
        return result[1] if result else None


__all__ = ["RoomRegistry", "RecordingTransition"]
