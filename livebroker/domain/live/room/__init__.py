from .room_registry import RoomRegistry

__all__ = ["RoomRegistry"]
