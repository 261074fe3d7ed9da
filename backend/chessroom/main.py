from flask import Blueprint, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the chess room server!'})

@main.route('/healthz')
def healthz():
    return 'OK\n', 200, {'Content-Type': 'text/plain'}
