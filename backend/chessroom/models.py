import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

WHITE = 'white'
BLACK = 'black'
COLORS = (WHITE, BLACK)
RANDOM = 'random'

PLAYER = 'player'
SPECTATOR = 'spectator'
NONE = 'none'

DRAW = 'draw'
STALEMATE = 'stalemate'


@dataclass(frozen=True)
class MoveRequest:
    from_square: str
    to_square: str
    promotion: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MoveRequest':
        return cls(data['from'], data['to'], data.get('promotion') or None)


@dataclass
class Member:
    sid: str
    name: str
    color: Optional[str] = None

    def to_dict(self):
        data = {'name': self.name}
        if self.color:
            data['color'] = self.color
        return data


@dataclass
class Terminal:
    is_over: bool = False
    winner: Optional[str] = None  # white, black, draw, stalemate


@dataclass
class PendingReset:
    requested_by: str
    sid: str
    token: int
    requested_at: float


@dataclass
class Connection:
    """Per-socket protocol state. Unbound until a room is created or joined."""
    sid: str
    room_id: Optional[str] = None
    role: str = NONE
    color: Optional[str] = None
    name: Optional[str] = None
    closed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_bound(self) -> bool:
        return self.room_id is not None

    def bind(self, room_id: str, role: str, color: Optional[str], name: str) -> None:
        self.room_id = room_id
        self.role = role
        self.color = color
        self.name = name

    def unbind(self) -> None:
        self.room_id = None
        self.role = NONE
        self.color = None
        self.name = None
