import itertools
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from chessroom.errors import AccessDenied, IllegalMove, InvalidState, RoomNotFound, TurnViolation
from chessroom.models import (
    COLORS, DRAW, PLAYER, RANDOM, SPECTATOR, STALEMATE,
    Member, MoveRequest, PendingReset, Terminal,
)
from .rules import ChessRules


ColorPolicy = Callable[[Sequence[Member], Optional[str]], str]


def assign_color(existing_players: Sequence[Member], requested: Optional[str] = None) -> str:
    """Pick the seat color for a new player.

    A free preferred color is honoured, ``random`` picks among the free
    colors, anything else takes the first free color (white, then black).
    """
    taken = {p.color for p in existing_players}
    free = [c for c in COLORS if c not in taken]
    if not free:
        raise InvalidState('Room has no free seat')
    if requested in free:
        return requested
    if requested == RANDOM:
        return random.choice(free)
    return free[0]


@dataclass
class JoinResult:
    role: str
    color: Optional[str] = None


@dataclass
class AppliedMove:
    move: Dict[str, Any]
    state: Dict[str, Any]


_reset_tokens = itertools.count(1)


class Room:
    """One game session: authoritative position, seats, spectators and result.

    All mutation goes through the methods below, which hold the room lock;
    the gateway also takes the lock around apply-and-broadcast so members
    see updates in the order they were applied.
    """

    MAX_PLAYERS = 2

    def __init__(self, room_id: str, access_secret: Optional[str] = None,
                 rules: Optional[ChessRules] = None, color_policy: ColorPolicy = assign_color):
        self.room_id = room_id
        self.access_secret = access_secret or None
        self.rules = rules or ChessRules()
        self.color_policy = color_policy
        self.position = self.rules.initial_position()
        self.players: List[Member] = []
        self.spectators: List[Member] = []
        self.terminal = Terminal()
        self.pending_reset: Optional[PendingReset] = None
        self.closed = False
        self.lock = threading.RLock()

    # ---- membership ----

    def add_member(self, sid: str, name: str, provided_secret: Optional[str] = None,
                   preferred_color: Optional[str] = None) -> JoinResult:
        with self.lock:
            if self.closed:
                raise RoomNotFound()
            if self.access_secret and self.access_secret != provided_secret:
                raise AccessDenied()
            if len(self.players) < self.MAX_PLAYERS:
                color = self.color_policy(self.players, preferred_color)
                self.players.append(Member(sid, name or f"Player {color}", color))
                return JoinResult(PLAYER, color)
            self.spectators.append(Member(sid, name))
            return JoinResult(SPECTATOR)

    def remove_member(self, sid: str) -> Optional[Member]:
        """Drop ``sid`` from the room. Returns the removed member, if any."""
        with self.lock:
            for group in (self.players, self.spectators):
                for member in group:
                    if member.sid == sid:
                        group.remove(member)
                        if member.color:
                            self.pending_reset = None
                        return member
            return None

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.MAX_PLAYERS

    @property
    def is_empty(self) -> bool:
        return not self.players and not self.spectators

    # ---- game ----

    def apply_move(self, acting_color: str, request: MoveRequest) -> AppliedMove:
        with self.lock:
            if self.terminal.is_over:
                raise IllegalMove('Game is over')
            if self.rules.side_to_move(self.position) != acting_color:
                raise TurnViolation()
            new_position, move = self.rules.apply_move(self.position, request)
            self.position = new_position
            if self.rules.is_checkmate(new_position):
                self.terminal = Terminal(True, acting_color)
            elif self.rules.is_stalemate(new_position):
                self.terminal = Terminal(True, STALEMATE)
            elif self.rules.is_draw(new_position):
                self.terminal = Terminal(True, DRAW)
            return AppliedMove(move, self.snapshot())

    def query_legal_moves(self, square: Any) -> List[Dict[str, Any]]:
        # san() and is_repetition() push and pop on the board they are given
        with self.lock:
            return self.rules.legal_moves(self.position, square)

    def reset(self) -> None:
        with self.lock:
            self.position = self.rules.initial_position()
            self.terminal = Terminal()
            self.pending_reset = None

    # ---- rematch negotiation ----

    def request_reset(self, color: str, sid: str) -> PendingReset:
        with self.lock:
            self.pending_reset = PendingReset(color, sid, next(_reset_tokens), time.time())
            return self.pending_reset

    def take_pending_reset(self, responder_color: str, ttl: float = 0) -> PendingReset:
        """Consume the outstanding request that ``responder_color`` answers.

        Raises InvalidState when nothing is pending, the request expired, or
        the responder is the requester.
        """
        with self.lock:
            pending = self.pending_reset
            if pending and ttl and time.time() - pending.requested_at > ttl:
                self.pending_reset = pending = None
            if pending is None:
                raise InvalidState('No reset request pending')
            if pending.requested_by == responder_color:
                raise InvalidState('Waiting for your opponent to answer')
            self.pending_reset = None
            return pending

    # ---- serialization ----

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            board = self.position
            rules = self.rules
            return {
                'roomId': self.room_id,
                'fen': rules.fen(board),
                'pgn': rules.pgn(board),
                'turn': rules.side_to_move(board),
                'isCheck': rules.is_check(board),
                'isCheckmate': rules.is_checkmate(board),
                'isStalemate': rules.is_stalemate(board),
                'isDraw': rules.is_draw(board),
                'isGameOver': rules.is_game_over(board),
                'gameOver': self.terminal.is_over,
                'winner': self.terminal.winner,
                'players': [p.to_dict() for p in self.players],
                'spectatorCount': len(self.spectators),
                'hasPin': bool(self.access_secret),
                'moveHistory': rules.history(board),
            }

    def summary(self) -> Dict[str, Any]:
        with self.lock:
            return {
                'roomId': self.room_id,
                'players': [p.to_dict() for p in self.players],
                'spectatorCount': len(self.spectators),
                'hasPin': bool(self.access_secret),
                'gameOver': self.terminal.is_over,
            }
