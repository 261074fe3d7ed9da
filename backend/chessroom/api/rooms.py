from flask import Blueprint, current_app, jsonify

from chessroom.socketio_events import GATEWAY_EXTENSION

rooms = Blueprint('rooms', __name__)


def _registry():
    return current_app.extensions[GATEWAY_EXTENSION].registry


@rooms.route('', methods=['GET'])
def list_rooms():
    """
    Lists live rooms so clients can offer something to spectate.
    """
    return jsonify([room.summary() for room in _registry().rooms()]), 200


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    """
    Returns a room summary, plus the full game state for rooms without a PIN.
    """
    room = _registry().find(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404

    response = room.summary()
    if not room.access_secret:
        response['gameState'] = room.snapshot()
    return jsonify(response), 200
