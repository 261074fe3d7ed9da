import os
import sys
from collections import defaultdict
import pytest

# Ensure the backend root (containing the `chessroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from chessroom import create_app, socketio
from chessroom.gateway import SessionGateway, Transport
from chessroom.services.rooms import RoomRegistry

NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = []
    SOCKETIO_NAMESPACE = NAMESPACE
    ROOM_ID_LENGTH = 6
    ROOM_ID_MAX_ATTEMPTS = 100


class RecordingTransport(Transport):
    """In-memory transport: keeps room membership and every delivered message."""

    def __init__(self):
        self.channels = defaultdict(set)
        self.delivered = []  # (sid, event, payload)
        self.tasks = []

    def send(self, sid, event, payload):
        self.delivered.append((sid, event, payload))

    def broadcast(self, room_id, event, payload, skip_sid=None):
        for sid in sorted(self.channels[room_id]):
            if sid != skip_sid:
                self.delivered.append((sid, event, payload))

    def enter_room(self, sid, room_id):
        self.channels[room_id].add(sid)

    def leave_room(self, sid, room_id):
        self.channels[room_id].discard(sid)

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def received(self, sid, event=None):
        return [(e, p) for s, e, p in self.delivered if s == sid and (event is None or e == event)]

    def payloads(self, sid, event):
        return [p for e, p in self.received(sid, event)]

    def clear(self):
        self.delivered.clear()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def registry():
    return RoomRegistry()


@pytest.fixture()
def gateway(registry, transport):
    return SessionGateway(registry, transport)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app):
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE
        )
        # Flush the connect acknowledgment
        test_client.get_received(NAMESPACE)
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


def received(sio_client, name=None):
    """Event payloads received since the last call, optionally filtered by name."""
    packets = sio_client.get_received(NAMESPACE)
    return [(p['name'], p['args'][0] if p['args'] else None) for p in packets
            if name is None or p['name'] == name]
