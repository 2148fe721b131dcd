# treino/routes/profile_routes.py
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..services.access import check_user_access
from ..services.account import AccountDeletionError, delete_account
from ..utils import clean_str, current_user

profile_bp = Blueprint("profile", __name__)


@profile_bp.route("", methods=["GET"])
@jwt_required()
def get_profile():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404
    return jsonify({"user": user.to_dict(), "access": check_user_access(user)}), 200


@profile_bp.route("", methods=["PUT"])
@jwt_required()
def update_profile():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    data = request.get_json(silent=True) or {}

    for field in ("first_name", "last_name", "phone"):
        if field in data:
            value = clean_str(data.get(field))
            setattr(user, field, value or None)

    db.session.commit()

    return jsonify({"user": user.to_dict()}), 200


@profile_bp.route("/access", methods=["GET"])
@jwt_required()
def access():
    """
    Returns:
    {
      "has_access": true,
      "message": "Trial active for 9 more days",
      "days_left": 9
    }
    """
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404
    return jsonify(check_user_access(user)), 200


@profile_bp.route("", methods=["DELETE"])
@jwt_required()
def delete_profile():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    user_id = user.id
    try:
        delete_account(user_id)
    except AccountDeletionError as e:
        return jsonify({"error": "Failed to delete account", "details": str(e)}), 500

    current_app.extensions["timer_registry"].discard(user_id)
    return jsonify({"message": "Account deleted"}), 200
