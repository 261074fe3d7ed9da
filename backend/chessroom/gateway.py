"""Per-connection protocol handling.

The gateway is transport-agnostic: it owns the connection table, turns
inbound events into request objects, drives the rooms and decides the
audience of every outbound event. Routing follows three rules:
acknowledgments and query answers go to the sender, state changes go to
the whole room, negotiation goes to the room minus the sender.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from chessroom.errors import InvalidState, RoomServerError, ServerError, Unauthorized
from chessroom.models import PLAYER, Connection
from chessroom.protocol import (
    REQUEST_TYPES, CreateRoom, GetLegalMoves, JoinRoom, LeaveRoom, MakeMove,
    Ping, ResetConfirmed, ResetDeclined, ResetGame, parse_request,
)
from chessroom.services.rooms import Room, RoomRegistry


class Transport:
    """Outbound side of the gateway. Implemented on top of Socket.IO."""

    def send(self, sid: str, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def broadcast(self, room_id: str, event: str, payload: Dict[str, Any], skip_sid: Optional[str] = None) -> None:
        raise NotImplementedError

    def enter_room(self, sid: str, room_id: str) -> None:
        raise NotImplementedError

    def leave_room(self, sid: str, room_id: str) -> None:
        raise NotImplementedError

    def start_background_task(self, target: Callable, *args) -> None:
        raise NotImplementedError


class SessionGateway:

    def __init__(self, registry: RoomRegistry, transport: Transport, logger: Optional[logging.Logger] = None,
                 empty_grace_sec: float = 0, reset_ttl_sec: float = 0,
                 max_name_length: int = 20, max_pin_length: int = 4):
        self.registry = registry
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)
        self.empty_grace_sec = empty_grace_sec
        self.reset_ttl_sec = reset_ttl_sec
        self.max_name_length = max_name_length
        self.max_pin_length = max_pin_length
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._handlers = {
            CreateRoom: self._on_create_room,
            JoinRoom: self._on_join_room,
            MakeMove: self._on_make_move,
            GetLegalMoves: self._on_get_legal_moves,
            ResetGame: self._on_reset_game,
            ResetConfirmed: self._on_reset_confirmed,
            ResetDeclined: self._on_reset_declined,
            LeaveRoom: self._on_leave_room,
            Ping: self._on_ping,
        }
        missing = [cls.__name__ for cls in REQUEST_TYPES if cls not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for request types: {', '.join(missing)}")

    # ---- lifecycle entry points ----

    def connect(self, sid: str) -> None:
        with self._lock:
            self._connections[sid] = Connection(sid)
        self.transport.send(sid, 'connected', {'message': 'Connected to chess room server'})

    def disconnect(self, sid: str) -> None:
        with self._lock:
            conn = self._connections.pop(sid, None)
        if conn is None:
            return
        try:
            with conn.lock:
                conn.closed = True
                if conn.is_bound:
                    self._leave(conn)
        except Exception:
            self.logger.exception(f"[disconnect-error] sid={sid} room={conn.room_id}")

    def dispatch(self, sid: str, event: str, data: Any = None) -> None:
        """Handle one inbound message to completion, reporting any failure to the sender."""
        try:
            request = parse_request(event, data, self.max_name_length, self.max_pin_length)
            conn = self.connection(sid)
            if conn is None:
                # Already disconnected, or never connected
                self.logger.info(f"[dropped] sid={sid} event={event}")
                return
            with conn.lock:
                if conn.closed:
                    self.logger.info(f"[dropped] sid={sid} event={event}")
                    return
                self._handlers[type(request)](conn, request)
        except RoomServerError as exc:
            self.logger.info(f"[rejected] sid={sid} event={event} kind={exc.kind} reason={exc.message}")
            self.transport.send(sid, 'error', exc.to_dict())
        except Exception:
            self.logger.exception(f"[server-error] sid={sid} event={event}")
            self.transport.send(sid, 'error', ServerError().to_dict())

    def connection(self, sid: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(sid)

    # ---- helpers ----

    def _require_unbound(self, conn: Connection) -> None:
        if conn.is_bound:
            raise InvalidState(f"Already in room {conn.room_id}")

    def _bound_room(self, conn: Connection) -> Room:
        if not conn.is_bound:
            raise InvalidState('Not in a room')
        return self.registry.get(conn.room_id)

    def _player_room(self, conn: Connection) -> Room:
        room = self._bound_room(conn)
        if conn.role != PLAYER:
            raise Unauthorized()
        return room

    def _leave(self, conn: Connection) -> None:
        room_id, sid, name = conn.room_id, conn.sid, conn.name
        conn.unbind()
        self.transport.leave_room(sid, room_id)
        room = self.registry.find(room_id)
        if room is not None:
            with room.lock:
                member = room.remove_member(sid)
                if member is not None:
                    self.logger.info(
                        f"[room-leave] room={room_id} sid={sid} name={name} color={member.color} "
                        f"players={len(room.players)} spectators={len(room.spectators)}"
                    )
                    self.transport.broadcast(room_id, 'player_disconnected', {
                        'message': 'Opponent disconnected' if member.color else 'Spectator left',
                        'role': PLAYER if member.color else 'spectator',
                        'color': member.color,
                        'name': member.name,
                        'gameState': room.snapshot(),
                    }, skip_sid=sid)
        self._schedule_cleanup(room_id)

    def _schedule_cleanup(self, room_id: str) -> None:
        if self.empty_grace_sec <= 0:
            self._delete_if_empty(room_id)
            return

        def _runner(code: str, delay: float):
            time.sleep(delay)
            self._delete_if_empty(code)

        self.transport.start_background_task(_runner, room_id, self.empty_grace_sec)

    def _delete_if_empty(self, room_id: str) -> None:
        if self.registry.delete_if_empty(room_id):
            self.logger.info(f"[room-delete] room={room_id}")

    # ---- request handlers ----

    def _on_create_room(self, conn: Connection, request: CreateRoom) -> None:
        self._require_unbound(conn)
        room = self.registry.create(request.secret)
        with room.lock:
            joined = room.add_member(conn.sid, request.name, request.secret, request.color)
            conn.bind(room.room_id, joined.role, joined.color, request.name)
            self.transport.enter_room(conn.sid, room.room_id)
            self.transport.send(conn.sid, 'room_created', {
                'roomId': room.room_id,
                'pin': room.access_secret,
                'color': joined.color,
                'role': joined.role,
                'gameState': room.snapshot(),
            })
        self.logger.info(
            f"[room-create] room={room.room_id} name={conn.name} "
            f"pin={'yes' if room.access_secret else 'no'} color={joined.color}"
        )

    def _on_join_room(self, conn: Connection, request: JoinRoom) -> None:
        self._require_unbound(conn)
        room = self.registry.get(request.room_id)
        with room.lock:
            joined = room.add_member(conn.sid, request.name, request.secret, request.color)
            conn.bind(room.room_id, joined.role, joined.color, request.name)
            self.transport.enter_room(conn.sid, room.room_id)
            if joined.role == PLAYER:
                if room.is_full:
                    self.transport.broadcast(room.room_id, 'game_start', {'gameState': room.snapshot()})
                self.transport.send(conn.sid, 'your_color', {
                    'roomId': room.room_id,
                    'color': joined.color,
                    'role': joined.role,
                })
            else:
                self.transport.send(conn.sid, 'joined_as_spectator', {
                    'roomId': room.room_id,
                    'role': joined.role,
                    'gameState': room.snapshot(),
                })
        self.logger.info(f"[room-join] room={room.room_id} name={conn.name} role={joined.role} color={joined.color}")

    def _on_make_move(self, conn: Connection, request: MakeMove) -> None:
        room = self._player_room(conn)
        with room.lock:
            applied = room.apply_move(conn.color, request.move)
            self.transport.broadcast(room.room_id, 'game_update', {
                'move': applied.move,
                'gameState': applied.state,
            })
            self.logger.info(f"[move] room={room.room_id} color={conn.color} san={applied.move['san']}")
            if room.terminal.is_over:
                self.logger.info(f"[game-over] room={room.room_id} winner={room.terminal.winner}")

    def _on_get_legal_moves(self, conn: Connection, request: GetLegalMoves) -> None:
        room = self._bound_room(conn)
        moves = room.query_legal_moves(request.square)
        self.transport.send(conn.sid, 'legal_moves', {'square': request.square, 'moves': moves})

    def _on_reset_game(self, conn: Connection, request: ResetGame) -> None:
        room = self._player_room(conn)
        with room.lock:
            try:
                # The counterpart asking too counts as agreement
                room.take_pending_reset(conn.color, self.reset_ttl_sec)
            except InvalidState:
                pending = room.request_reset(conn.color, conn.sid)
                self.transport.broadcast(room.room_id, 'reset_request', {'requestedBy': conn.color},
                                         skip_sid=conn.sid)
                self.logger.info(f"[reset-request] room={room.room_id} by={conn.color} token={pending.token}")
                return
            self._perform_reset(room, conn)

    def _on_reset_confirmed(self, conn: Connection, request: ResetConfirmed) -> None:
        room = self._player_room(conn)
        with room.lock:
            room.take_pending_reset(conn.color, self.reset_ttl_sec)
            self._perform_reset(room, conn)

    def _on_reset_declined(self, conn: Connection, request: ResetDeclined) -> None:
        room = self._player_room(conn)
        with room.lock:
            pending = room.take_pending_reset(conn.color, self.reset_ttl_sec)
            self.transport.send(pending.sid, 'reset_declined', {'declinedBy': conn.color})
        self.logger.info(f"[reset-decline] room={room.room_id} by={conn.color}")

    def _perform_reset(self, room: Room, conn: Connection) -> None:
        room.reset()
        self.transport.broadcast(room.room_id, 'game_reset', {'gameState': room.snapshot()})
        self.logger.info(f"[reset] room={room.room_id} confirmed_by={conn.color}")

    def _on_leave_room(self, conn: Connection, request: LeaveRoom) -> None:
        if not conn.is_bound:
            raise InvalidState('Not in a room')
        room_id = conn.room_id
        self._leave(conn)
        self.transport.send(conn.sid, 'left', {'roomId': room_id})

    def _on_ping(self, conn: Connection, request: Ping) -> None:
        self.transport.send(conn.sid, 'pong', request.payload or {})
