from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)


@main.route('/')
def index():
    registry = current_app.extensions['session_registry']
    return jsonify({'message': 'Welcome to the Impostor game server!', 'sessions': len(registry)})
