import math
from datetime import datetime, timedelta
from functools import wraps

from flask import current_app, jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..models.feedback import AppSetting
from ..models.user import User


def free_trial_days() -> int:
    return AppSetting.get_int("free_trial_days", current_app.config.get("FREE_TRIAL_DAYS", 14))


def _days_left(expiry, now):
    return math.ceil((expiry - now).total_seconds() / 86400)


def _trial_message(days_left):
    return f"Trial active for {days_left} more day{'s' if days_left != 1 else ''}"


def check_user_access(user, now=None):
    """
    Whether `user` may use premium features.

    admin/paid: always. free: until `expiry_date` when set, otherwise for
    `free_trial_days` after sign-up.
    """
    if user is None:
        return {"has_access": False, "message": "User not authenticated", "days_left": None}

    now = now or datetime.utcnow()

    if user.plan_type in ("admin", "paid"):
        return {
            "has_access": True,
            "message": "Admin access" if user.plan_type == "admin" else "Paid access",
            "days_left": None,
        }

    if user.plan_type == "free":
        expiry = user.expiry_date
        if expiry is None:
            expiry = (user.created_at or now) + timedelta(days=free_trial_days())
        if now < expiry:
            days_left = _days_left(expiry, now)
            return {"has_access": True, "message": _trial_message(days_left), "days_left": days_left}
        return {"has_access": False, "message": "Your free trial has expired", "days_left": 0}

    return {"has_access": False, "message": "Unknown plan type", "days_left": None}


def access_required(fn):
    """jwt_required + an active plan or trial."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = User.query.get(int(get_jwt_identity()))
        if not user:
            return jsonify({"error": "user not found"}), 404
        access = check_user_access(user)
        if not access["has_access"]:
            return jsonify({"error": access["message"], "access": access}), 403
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = User.query.get(int(get_jwt_identity()))
        if not user or not user.is_admin:
            return jsonify({"error": "admin access required"}), 403
        return fn(*args, **kwargs)

    return wrapper
