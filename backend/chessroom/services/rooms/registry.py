import random
import string
import threading
import time
from typing import Dict, List, Optional

from chessroom.errors import RoomNotFound
from .room import Room
from .rules import ChessRules

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits


def _time_derived_id(length: int) -> str:
    value = time.time_ns()
    digits = []
    while value:
        value, rem = divmod(value, len(ROOM_ID_ALPHABET))
        digits.append(ROOM_ID_ALPHABET[rem])
    return ''.join(digits)[:length].rjust(length, '0')


def normalize_room_id(room_id) -> str:
    return str(room_id or '').strip().upper()


class RoomRegistry:
    """Process-wide ``room_id -> Room`` mapping. In-memory only."""

    def __init__(self, id_length: int = 6, max_attempts: int = 100, rules: Optional[ChessRules] = None):
        self.id_length = id_length
        self.max_attempts = max_attempts
        self.rules = rules or ChessRules()
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def generate_room_id(self) -> str:
        """Generate a unique, short room code. Caller holds the lock."""
        for _ in range(self.max_attempts):
            code = ''.join(random.choices(ROOM_ID_ALPHABET, k=self.id_length))
            if code not in self._rooms:
                return code
        return _time_derived_id(self.id_length)

    def create(self, access_secret: Optional[str] = None) -> Room:
        with self._lock:
            room = Room(self.generate_room_id(), access_secret, rules=self.rules)
            self._rooms[room.room_id] = room
            return room

    def get(self, room_id) -> Room:
        with self._lock:
            room = self._rooms.get(normalize_room_id(room_id))
        if room is None:
            raise RoomNotFound()
        return room

    def find(self, room_id) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(normalize_room_id(room_id))

    def delete_if_empty(self, room_id) -> bool:
        """Drop the room when no players or spectators remain."""
        code = normalize_room_id(room_id)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return False
            with room.lock:
                if not room.is_empty:
                    return False
                room.closed = True
                del self._rooms[code]
                return True

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id) -> bool:
        with self._lock:
            return normalize_room_id(room_id) in self._rooms
