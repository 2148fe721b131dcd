# treino/routes/admin_routes.py
from flask import Blueprint, current_app, jsonify, request

from .. import db
from ..models.assessment import AISuggestedWorkout
from ..models.feedback import AppSetting, UserFeedback
from ..models.user import PLAN_TYPES, User
from ..services.access import admin_required, check_user_access, free_trial_days
from ..utils import clean_str, parse_datetime, safe_int, safe_int_or_none

admin_bp = Blueprint("admin", __name__)

FEEDBACK_STATUSES = ("pending", "reviewed", "resolved")
MAX_PAGE_SIZE = 100


# -----------------------------
# Users
# -----------------------------
@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    page = max(1, safe_int(request.args.get("page"), 1))
    per_page = min(max(1, safe_int(request.args.get("per_page"), 20)), MAX_PAGE_SIZE)

    query = User.query
    search = clean_str(request.args.get("q")).lower()
    if search:
        query = query.filter(User.email.ilike(f"%{search}%"))
    plan = clean_str(request.args.get("plan_type"))
    if plan:
        query = query.filter_by(plan_type=plan)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return jsonify({
        "users": [dict(u.to_dict(), access=check_user_access(u)) for u in users],
        "total": total,
        "page": page,
        "per_page": per_page,
    }), 200


@admin_bp.route("/users/<int:user_id>/plan", methods=["PUT"])
@admin_required
def update_plan(user_id: int):
    """Body: {"plan_type": "free|paid|admin", "expiry_date": "2025-12-31"}"""
    user = User.query.get(user_id)
    if not user:
        return jsonify({"error": "user not found"}), 404

    data = request.get_json(silent=True) or {}
    plan_type = clean_str(data.get("plan_type"))
    if plan_type not in PLAN_TYPES:
        return jsonify({"error": f"plan_type must be one of {', '.join(PLAN_TYPES)}"}), 400

    if "expiry_date" in data:
        try:
            user.expiry_date = parse_datetime(data.get("expiry_date"))
        except ValueError:
            return jsonify({"error": "expiry_date must be an ISO date"}), 400

    user.plan_type = plan_type
    db.session.commit()
    current_app.logger.info(f"[admin] user {user.id} plan set to {plan_type}")

    return jsonify({"user": user.to_dict()}), 200


@admin_bp.route("/profiles/<int:user_id>", methods=["GET"])
@admin_required
def check_profile(user_id: int):
    user = User.query.get(user_id)
    if not user:
        return jsonify({"exists": False}), 404
    return jsonify({
        "exists": True,
        "profile": {
            "id": user.id,
            "email": user.email,
            "plan_type": user.plan_type,
            "stripe_customer_id": user.stripe_customer_id,
        },
    }), 200


# -----------------------------
# Feedback
# -----------------------------
@admin_bp.route("/feedback", methods=["GET"])
@admin_required
def list_feedback():
    query = UserFeedback.query
    status = clean_str(request.args.get("status"))
    if status:
        query = query.filter_by(status=status)
    rows = query.order_by(UserFeedback.created_at.desc(), UserFeedback.id.desc()).all()
    return jsonify({"feedback": [f.to_dict() for f in rows]}), 200


@admin_bp.route("/feedback/<int:feedback_id>", methods=["PUT"])
@admin_required
def update_feedback(feedback_id: int):
    row = UserFeedback.query.get(feedback_id)
    if not row:
        return jsonify({"error": "feedback not found"}), 404

    data = request.get_json(silent=True) or {}
    status = clean_str(data.get("status"))
    if status not in FEEDBACK_STATUSES:
        return jsonify({"error": f"status must be one of {', '.join(FEEDBACK_STATUSES)}"}), 400

    row.status = status
    db.session.commit()
    return jsonify({"feedback": row.to_dict()}), 200


# -----------------------------
# Settings
# -----------------------------
@admin_bp.route("/settings", methods=["GET"])
@admin_required
def get_settings():
    return jsonify({"free_trial_days": free_trial_days()}), 200


@admin_bp.route("/settings", methods=["PUT"])
@admin_required
def update_settings():
    data = request.get_json(silent=True) or {}
    days = safe_int_or_none(data.get("free_trial_days"))
    if days is None or days < 0:
        return jsonify({"error": "free_trial_days must be a non-negative integer"}), 400

    row = AppSetting.query.filter_by(setting_key="free_trial_days").first()
    if row is None:
        row = AppSetting(
            setting_key="free_trial_days",
            description="Length of the free trial for new users, in days",
        )
        db.session.add(row)
    row.setting_value = str(days)
    db.session.commit()

    return jsonify({"free_trial_days": days}), 200


# -----------------------------
# AI suggestion ratings
# -----------------------------
@admin_bp.route("/suggestions/feedback", methods=["GET"])
@admin_required
def suggestion_feedback():
    rows = (
        AISuggestedWorkout.query.filter(AISuggestedWorkout.user_feedback.isnot(None))
        .order_by(AISuggestedWorkout.created_at.desc())
        .all()
    )
    scores = [r.user_feedback for r in rows]
    return jsonify({
        "count": len(rows),
        "average_score": round(sum(scores) / len(scores), 2) if scores else None,
        "suggestions": [dict(r.to_dict(), user_id=r.user_id) for r in rows],
    }), 200
