# treino/routes/feedback_routes.py
from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from .. import db
from ..models.feedback import UserFeedback
from ..models.user import User
from ..utils import clean_str

feedback_bp = Blueprint("feedback", __name__)

FEEDBACK_TYPES = ("bug", "suggestion", "question", "other")


@feedback_bp.route("", methods=["POST"])
def submit():
    """Anonymous feedback is accepted; a valid token links it to the user."""
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    user = User.query.get(int(identity)) if identity else None

    data = request.get_json(silent=True) or {}

    message = clean_str(data.get("message"))
    if not message:
        return jsonify({"error": "message is required"}), 400

    feedback_type = (clean_str(data.get("feedback_type")) or "suggestion").lower()
    if feedback_type not in FEEDBACK_TYPES:
        return jsonify({"error": f"feedback_type must be one of {', '.join(FEEDBACK_TYPES)}"}), 400

    device_info = data.get("device_info")
    if device_info is not None and not isinstance(device_info, dict):
        device_info = {"raw": str(device_info)}
    if device_info is None:
        device_info = {"user_agent": request.headers.get("User-Agent")}

    row = UserFeedback(
        user_id=user.id if user else None,
        email=(data.get("email") or (user.email if user else None)),
        feedback_type=feedback_type,
        message=message,
        device_info=device_info,
    )
    db.session.add(row)
    db.session.commit()

    return jsonify({"success": True, "feedback": row.to_dict()}), 201
