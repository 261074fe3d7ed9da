from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from chessroom.main import main
    flask_app.register_blueprint(main)

    from chessroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # One registry per app, handed to the gateway explicitly
    from chessroom.gateway import SessionGateway
    from chessroom.services.rooms import RoomRegistry
    from chessroom.socketio_events import GATEWAY_EXTENSION, SocketIOTransport, register_socketio_handlers

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    registry = RoomRegistry(
        id_length=flask_app.config.get('ROOM_ID_LENGTH', 6),
        max_attempts=flask_app.config.get('ROOM_ID_MAX_ATTEMPTS', 100),
    )
    # In tests, drop empty rooms immediately for determinism
    grace = 0 if flask_app.config.get('TESTING') else flask_app.config.get('ROOM_EMPTY_GRACE_SEC', 0)
    flask_app.extensions[GATEWAY_EXTENSION] = SessionGateway(
        registry,
        SocketIOTransport(socketio, namespace),
        logger=flask_app.logger,
        empty_grace_sec=grace,
        reset_ttl_sec=flask_app.config.get('RESET_REQUEST_TTL_SEC', 0),
        max_name_length=flask_app.config.get('MAX_NAME_LENGTH', 20),
        max_pin_length=flask_app.config.get('MAX_PIN_LENGTH', 4),
    )
    register_socketio_handlers(socketio, namespace)

    return flask_app
