# treino/routes/timer_routes.py
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..services.timers import UnknownMessage
from ..utils import current_user_id

timers_bp = Blueprint("timers", __name__)


def _coordinator():
    return current_app.extensions["timer_registry"].get(current_user_id())


def _client_id(data=None):
    return str((data or {}).get("client_id") or request.args.get("client_id") or "default")


@timers_bp.route("/messages", methods=["POST"])
@jwt_required()
def post_message():
    """
    Body:
    {
      "client_id": "tab-1",
      "type": "HEARTBEAT|START_EXERCISE_TIMER|START_REST_TIMER|STOP_ALL_TIMERS",
      "duration": 45,
      "data": {"timerActive": true, "timeRemaining": 30.2, ...}   // HEARTBEAT only
    }
    """
    data = request.get_json(silent=True) or {}
    coordinator = _coordinator()
    client_id = _client_id(data)
    coordinator.connect(client_id)

    try:
        coordinator.handle_message(data)
    except UnknownMessage as e:
        return jsonify({"error": str(e)}), 400

    coordinator.advance()
    return jsonify({
        "state": coordinator.snapshot(),
        "messages": coordinator.drain(client_id),
    }), 200


@timers_bp.route("/messages", methods=["GET"])
@jwt_required()
def poll_messages():
    coordinator = _coordinator()
    client_id = _client_id()
    coordinator.advance()
    return jsonify({
        "state": coordinator.snapshot(),
        "messages": coordinator.drain(client_id),
    }), 200
