"""Client requests as a closed set of message types.

Each Socket.IO event name maps to one frozen dataclass; ``parse_request``
validates the raw payload and is the only place wire field names appear.
"""
import re
from dataclasses import dataclass
from typing import Any, Optional

from chessroom.errors import MalformedRequest
from chessroom.models import COLORS, RANDOM, MoveRequest

_UNSAFE_NAME_CHARS = re.compile(r'[<>"\']')


def sanitize_name(raw: Any, max_length: int = 20) -> str:
    name = _UNSAFE_NAME_CHARS.sub('', str(raw or '').strip())[:max_length].strip()
    return name or 'Player'


def sanitize_pin(raw: Any, max_length: int = 4) -> Optional[str]:
    if raw is None:
        return None
    pin = str(raw).strip()[:max_length]
    return pin or None


def provided_pin(raw: Any) -> Optional[str]:
    """A joiner's PIN, compared against the room's exactly as sent."""
    if raw is None:
        return None
    return str(raw)


def _color_preference(raw: Any) -> Optional[str]:
    if raw is None or raw == '':
        return None
    value = str(raw).lower()
    if value not in COLORS + (RANDOM,):
        raise MalformedRequest(f"Unknown color: {raw}")
    return value


@dataclass(frozen=True)
class CreateRoom:
    event = 'create_room'
    name: str
    secret: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class JoinRoom:
    event = 'join_room'
    room_id: str
    name: str
    secret: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class MakeMove:
    event = 'make_move'
    move: MoveRequest


@dataclass(frozen=True)
class GetLegalMoves:
    event = 'get_legal_moves'
    square: str


@dataclass(frozen=True)
class ResetGame:
    event = 'reset_game'


@dataclass(frozen=True)
class ResetConfirmed:
    event = 'reset_confirmed'


@dataclass(frozen=True)
class ResetDeclined:
    event = 'reset_declined'


@dataclass(frozen=True)
class LeaveRoom:
    event = 'leave_room'


@dataclass(frozen=True)
class Ping:
    event = 'ping'
    payload: Any = None


REQUEST_TYPES = (
    CreateRoom, JoinRoom, MakeMove, GetLegalMoves,
    ResetGame, ResetConfirmed, ResetDeclined, LeaveRoom, Ping,
)
EVENTS = {cls.event: cls for cls in REQUEST_TYPES}


def parse_request(event: str, data: Any, max_name_length: int = 20, max_pin_length: int = 4):
    """Build the request object for a raw Socket.IO event and payload."""
    if event not in EVENTS:
        raise MalformedRequest(f"Unknown message type: {event}")
    if event == Ping.event:
        return Ping(data)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedRequest('Payload must be an object')

    if event == CreateRoom.event:
        return CreateRoom(
            name=sanitize_name(data.get('playerName'), max_name_length),
            secret=sanitize_pin(data.get('pin'), max_pin_length),
            color=_color_preference(data.get('color')),
        )
    if event == JoinRoom.event:
        room_id = str(data.get('roomId') or '').strip().upper()
        if not room_id:
            raise MalformedRequest('roomId is required')
        return JoinRoom(
            room_id=room_id,
            name=sanitize_name(data.get('playerName'), max_name_length),
            secret=provided_pin(data.get('pin')),
            color=_color_preference(data.get('color')),
        )
    if event == MakeMove.event:
        move = data.get('move')
        if not isinstance(move, dict) or not move.get('from') or not move.get('to'):
            raise MalformedRequest('move with from and to is required')
        return MakeMove(MoveRequest.from_dict(move))
    if event == GetLegalMoves.event:
        square = data.get('square')
        if not square:
            raise MalformedRequest('square is required')
        return GetLegalMoves(str(square))
    # Remaining requests carry no fields
    return EVENTS[event]()

