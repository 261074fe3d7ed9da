import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of browser origins allowed to open the socket
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000',
    ).split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Room identifiers
    ROOM_ID_LENGTH = int(os.environ.get('ROOM_ID_LENGTH', '6'))
    ROOM_ID_MAX_ATTEMPTS = int(os.environ.get('ROOM_ID_MAX_ATTEMPTS', '100'))
    # Input limits
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '20'))
    MAX_PIN_LENGTH = int(os.environ.get('MAX_PIN_LENGTH', '4'))
    # Delay before an empty room is dropped (seconds). 0 deletes immediately.
    ROOM_EMPTY_GRACE_SEC = float(os.environ.get('ROOM_EMPTY_GRACE_SEC', '0'))
    # Optional: expire an unanswered rematch request (seconds). 0 disables.
    RESET_REQUEST_TTL_SEC = float(os.environ.get('RESET_REQUEST_TTL_SEC', '0'))
