"""Tests for RoomRegistry."""

import asyncio
import itertools
from datetime import datetime, timezone

import pytest

from livebroker.domain.live.room import RoomRegistry
from livebroker.schemas import (
    RecordingActive,
    RecordingCompleted,
    RecordingFailed,
    RecordingIdle,
    RecordingStarting,
    RecordingStatus,
    RecordingStopping,
)
from livebroker.utils.app_errors import AppError, AppErrorCode

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
STARTING = RecordingStarting(file_path="p.mp4", requested_at=NOW)


def _active(job_id: str) -> RecordingActive:
    return RecordingActive(job_id=job_id, file_path="p.mp4", started_at=NOW)


def _stopping(job_id: str) -> RecordingStopping:
    return RecordingStopping(job_id=job_id, file_path="p.mp4", started_at=NOW)


class TestCreate:
    """Tests for RoomRegistry.create."""

    async def test_create_stores_active_idle_room(self, registry: RoomRegistry):
        """New rooms are active and not recording."""
        # Act
        room = await registry.create("Alice")

        # Assert
        assert room.owner_identity == "Alice"
        assert room.active is True
        assert room.recording_active is False
        assert room.recording_job_id is None
        assert room.recording_status == RecordingStatus.IDLE
        assert room.id.startswith("room_")
        assert await registry.get(room.id) == room

    async def test_create_generates_distinct_ids(self, registry: RoomRegistry):
        """Many creates never reuse an id."""
        rooms = await asyncio.gather(*(registry.create(f"host{i}") for i in range(50)))

        assert len({room.id for room in rooms}) == 50
        assert len(registry) == 50

    async def test_create_skips_colliding_ids(self):
        """A colliding id from the factory is replaced by the next one."""
        # Arrange
        ids = iter(["room_a", "room_a", "room_b"])
        registry = RoomRegistry(id_factory=lambda: next(ids), clock=lambda: NOW)

        # Act
        first = await registry.create("Alice")
        second = await registry.create("Bob")

        # Assert
        assert first.id == "room_a"
        assert second.id == "room_b"
        assert second.created_at == NOW


class TestGet:
    """Tests for RoomRegistry.get."""

    async def test_get_unknown_returns_none(self, registry: RoomRegistry):
        assert await registry.get("missing") is None

    async def test_get_returns_copy(self, registry: RoomRegistry):
        """Mutating a returned room does not change the registry."""
        # Arrange
        room = await registry.create("Alice")

        # Act
        room.active = False

        # Assert
        stored = await registry.get(room.id)
        assert stored is not None
        assert stored.active is True


class TestEnd:
    """Tests for RoomRegistry.end."""

    async def test_end_marks_inactive(self):
        """Ending a room clears active and records ended_at."""
        # Arrange
        registry = RoomRegistry(clock=lambda: NOW)
        room = await registry.create("Alice")

        # Act
        ended = await registry.end(room.id)

        # Assert
        assert ended is not None
        assert ended.active is False
        assert ended.ended_at == NOW

    async def test_end_is_idempotent(self, registry: RoomRegistry):
        """Ending an ended room succeeds and keeps the first ended_at."""
        # Arrange
        room = await registry.create("Alice")
        first = await registry.end(room.id)

        # Act
        second = await registry.end(room.id)

        # Assert
        assert first is not None and second is not None
        assert second.active is False
        assert second.ended_at == first.ended_at

    async def test_end_unknown_returns_none(self, registry: RoomRegistry):
        assert await registry.end("missing") is None


class TestUpdateRecording:
    """Tests for RoomRegistry.update_recording and set_recording_state."""

    async def test_transition_applies_new_phase(self, registry: RoomRegistry):
        # Arrange
        room = await registry.create("Alice")
        await registry.set_recording_state(room.id, STARTING)

        # Act
        result = await registry.update_recording(room.id, lambda _room: _active("EG_1"))

        # Assert
        assert result is not None
        before, after = result
        assert before.recording == STARTING
        assert after.recording_active is True
        assert after.recording_job_id == "EG_1"

    async def test_unreachable_phase_is_rejected(self, registry: RoomRegistry):
        """A recording cannot become active without being started."""
        # Arrange
        room = await registry.create("Alice")

        # Act
        with pytest.raises(AppError) as exc_info:
            await registry.set_recording_state(room.id, _active("EG_1"))

        # Assert
        assert exc_info.value.errcode == AppErrorCode.E_INVALID_TRANSITION
        assert exc_info.value.status_code == 409
        assert "idle -> active" in exc_info.value.errmesg
        stored = await registry.get(room.id)
        assert stored is not None
        assert stored.recording == RecordingIdle()

    async def test_stopping_cannot_go_back_to_active(self, registry: RoomRegistry):
        room = await registry.create("Alice")
        for phase in (STARTING, _active("EG_1"), _stopping("EG_1")):
            await registry.set_recording_state(room.id, phase)

        with pytest.raises(AppError):
            await registry.set_recording_state(room.id, _active("EG_1"))

        stored = await registry.get(room.id)
        assert stored is not None
        assert stored.recording_status == RecordingStatus.STOPPING

    async def test_starting_rolls_back_to_previous_phase(self, registry: RoomRegistry):
        """A failed start may restore the phase the room had before it."""
        # Arrange
        room = await registry.create("Alice")
        completed = RecordingCompleted(job_id="EG_1", destination="https://x/1.mp4", ended_at=NOW)
        for phase in (STARTING, _active("EG_1"), _stopping("EG_1"), completed, STARTING):
            await registry.set_recording_state(room.id, phase)

        # Act
        updated = await registry.set_recording_state(room.id, completed)

        # Assert
        assert updated is not None
        assert updated.recording == completed

    async def test_same_phase_is_a_no_op(self, registry: RoomRegistry):
        room = await registry.create("Alice")

        result = await registry.update_recording(room.id, lambda current: current.recording)

        assert result is not None
        before, after = result
        assert before == after

    async def test_transition_that_raises_leaves_room_untouched(self, registry: RoomRegistry):
        # Arrange
        room = await registry.create("Alice")

        def refuse(_room):
            raise RuntimeError("no")

        # Act
        with pytest.raises(RuntimeError):
            await registry.update_recording(room.id, refuse)

        # Assert
        stored = await registry.get(room.id)
        assert stored is not None
        assert stored.recording == RecordingIdle()

    async def test_completed_phase_sets_destination_history(self, registry: RoomRegistry):
        """The last completed destination survives a later failed recording."""
        # Arrange
        room = await registry.create("Alice")
        completed = RecordingCompleted(job_id="EG_1", destination="https://x/1.mp4", ended_at=NOW)
        failed = RecordingFailed(job_id="EG_2", reason="boom", ended_at=NOW)

        # Act
        for phase in (STARTING, _active("EG_1"), _stopping("EG_1"), completed):
            await registry.set_recording_state(room.id, phase)
        for phase in (STARTING, _active("EG_2"), _stopping("EG_2")):
            await registry.set_recording_state(room.id, phase)
        updated = await registry.set_recording_state(room.id, failed)

        # Assert
        assert updated is not None
        assert updated.recording_status == RecordingStatus.FAILED
        assert updated.recording_destination == "https://x/1.mp4"
        assert updated.recording_job_id == "EG_2"

    async def test_update_unknown_room_returns_none(self, registry: RoomRegistry):
        assert await registry.set_recording_state("missing", RecordingIdle()) is None


class TestFindByJobId:
    """Tests for RoomRegistry.find_by_job_id."""

    async def test_finds_owner_room(self, registry: RoomRegistry):
        # Arrange
        ids = itertools.count()
        rooms = [await registry.create(f"host{next(ids)}") for _ in range(3)]
        await registry.set_recording_state(rooms[1].id, STARTING)
        await registry.set_recording_state(rooms[1].id, _active("EG_target"))

        # Act
        found = await registry.find_by_job_id("EG_target")

        # Assert
        assert found is not None
        assert found.id == rooms[1].id

    async def test_unknown_job_returns_none(self, registry: RoomRegistry):
        await registry.create("Alice")
        assert await registry.find_by_job_id("EG_missing") is None
