from flask import current_app, request
from flask_socketio import SocketIO

from chessroom.gateway import SessionGateway, Transport
from chessroom.protocol import EVENTS

GATEWAY_EXTENSION = 'chessroom_gateway'


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


class SocketIOTransport(Transport):
    """Gateway transport backed by Flask-SocketIO rooms on one namespace."""

    def __init__(self, sio: SocketIO, namespace: str = '/ws'):
        self.socketio = sio
        self.namespace = namespace

    def send(self, sid, event, payload):
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def broadcast(self, room_id, event, payload, skip_sid=None):
        self.socketio.emit(event, payload, to=room_channel(room_id), skip_sid=skip_sid, namespace=self.namespace)

    def enter_room(self, sid, room_id):
        self.socketio.server.enter_room(sid, room_channel(room_id), namespace=self.namespace)

    def leave_room(self, sid, room_id):
        self.socketio.server.leave_room(sid, room_channel(room_id), namespace=self.namespace)

    def start_background_task(self, target, *args):
        self.socketio.start_background_task(target, *args)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _gateway() -> SessionGateway:
    return current_app.extensions[GATEWAY_EXTENSION]


def handle_connect(auth=None):
    _gateway().connect(_get_sid())


def handle_disconnect(reason=None):
    _gateway().disconnect(_get_sid())


def _make_event_handler(event: str):
    def _handler(data=None):
        _gateway().dispatch(_get_sid(), event, data)
    _handler.__name__ = f"handle_{event}"
    return _handler


def register_socketio_handlers(sio: SocketIO, namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers.

    Every request type known to the protocol gets an event of the same name
    on ``namespace``; all of them funnel into the app's gateway.
    """
    sio.on_event('connect', handle_connect, namespace=namespace)
    sio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for event in EVENTS:
        sio.on_event(event, _make_event_handler(event), namespace=namespace)
