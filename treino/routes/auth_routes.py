# treino/routes/auth_routes.py

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, jwt_required

from .. import db
from ..models.user import User, generate_affiliate_code
from ..services.affiliate import attach_referral
from ..utils import clean_str, current_user

auth_bp = Blueprint("auth", __name__)


# -----------------------------
# Routes
# -----------------------------
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body:
    {
      "email": "...",
      "password": "...",
      "first_name": "...",   // optional
      "last_name": "...",    // optional
      "ref": "K7Q2M9XA"      // optional affiliate code
    }
    """
    data = request.get_json(silent=True) or {}

    email = clean_str(data.get("email")).lower()
    password = data.get("password") or ""  # do NOT strip passwords

    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400

    if not isinstance(password, str):
        return jsonify({"error": "password must be a string"}), 400

    if len(password) < 6:
        return jsonify({"error": "password must be at least 6 characters"}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "email already in use"}), 400

    user = User(
        email=email,
        first_name=clean_str(data.get("first_name")) or None,
        last_name=clean_str(data.get("last_name")) or None,
        affiliate_code=generate_affiliate_code(),
        plan_type="free",
    )
    user.set_password(password)

    try:
        db.session.add(user)
        db.session.flush()

        if data.get("ref") and not attach_referral(user, data.get("ref")):
            current_app.logger.info(f"[auth/register] unknown ref code '{data.get('ref')}'")

        db.session.commit()

        access_token = create_access_token(identity=str(user.id))
        return jsonify({"token": access_token, "user": user.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"Registration Error: {e}")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}

    email = clean_str(data.get("email")).lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400
    if not isinstance(password, str):
        return jsonify({"error": "invalid credentials"}), 401

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        current_app.logger.info(f"[auth/login] failed login for '{email}'")
        return jsonify({"error": "invalid credentials"}), 401

    access_token = create_access_token(identity=str(user.id))
    return jsonify({"token": access_token, "user": user.to_dict()}), 200


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404
    return jsonify({"user": user.to_dict()}), 200
