"""Error kinds reported to clients.

Every error is recoverable: the gateway reports it to the originating
connection only and neither the connection nor the room is torn down.
"""


class RoomServerError(Exception):
    kind = 'ServerError'
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.kind, 'message': self.message}


class RoomNotFound(RoomServerError):
    kind = 'RoomNotFound'
    default_message = 'Room not found'


class AccessDenied(RoomServerError):
    kind = 'AccessDenied'
    default_message = 'Incorrect PIN'


class TurnViolation(RoomServerError):
    kind = 'TurnViolation'
    default_message = 'Not your turn'


class IllegalMove(RoomServerError):
    kind = 'IllegalMove'
    default_message = 'Invalid move'


class Unauthorized(RoomServerError):
    kind = 'Unauthorized'
    default_message = 'Only seated players can do that'


class MalformedRequest(RoomServerError):
    kind = 'MalformedRequest'
    default_message = 'Malformed request'


class InvalidState(RoomServerError):
    kind = 'InvalidState'
    default_message = 'Request not valid right now'


class ServerError(RoomServerError):
    pass
