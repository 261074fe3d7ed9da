"""Room domain services: rules adapter, rooms and the room registry.

Pure in-memory logic shared by socket handlers and HTTP routes; transport
concerns live in the gateway.
"""

from .registry import RoomRegistry, normalize_room_id
from .room import AppliedMove, JoinResult, Room, assign_color
from .rules import ChessRules
