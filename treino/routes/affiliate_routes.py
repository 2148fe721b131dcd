# treino/routes/affiliate_routes.py
import hmac

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required, verify_jwt_in_request

from .. import db
from ..models.affiliate import AffiliateInvite
from ..models.user import User
from ..services.affiliate import (
    AffiliateError,
    apply_bonus,
    create_invite,
    invite_link,
    register_bonus,
)
from ..utils import clean_str, current_user, safe_int_or_none

affiliate_bp = Blueprint("affiliate", __name__)


def _webhook_authorized() -> bool:
    expected = current_app.config.get("AFFILIATE_WEBHOOK_SECRET")
    provided = request.headers.get("X-Webhook-Secret")
    if not expected or not provided:
        return False
    return hmac.compare_digest(str(expected), str(provided))


def _base_url() -> str:
    return current_app.config.get("APP_URL") or request.host_url


@affiliate_bp.route("", methods=["GET"])
@jwt_required()
def overview():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    invites = (
        AffiliateInvite.query.filter_by(sender_id=user.id)
        .order_by(AffiliateInvite.created_at.desc())
        .all()
    )
    return jsonify({
        "affiliateCode": user.affiliate_code,
        "inviteLink": invite_link(_base_url(), user.affiliate_code),
        "bonusesCount": int(user.affiliate_bonuses or 0),
        "referralsCount": User.query.filter_by(referred_by=user.id).count(),
        "invites": [i.to_dict() for i in invites],
    }), 200


@affiliate_bp.route("/invites", methods=["POST"])
@jwt_required()
def send_invite():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    data = request.get_json(silent=True) or {}
    email = clean_str(data.get("email")).lower()
    if not email or "@" not in email:
        return jsonify({"error": "a valid email is required"}), 400
    if email == user.email:
        return jsonify({"error": "you cannot invite yourself"}), 400

    try:
        invite, link = create_invite(user, email, _base_url())
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[affiliate/invites] failed: {e}")
        return jsonify({"error": "Failed to send invite"}), 500

    return jsonify({"success": True, "invite": invite.to_dict(), "link": link}), 201


@affiliate_bp.route("/bonuses/register", methods=["POST"])
def register():
    """
    Body: {"user_id": 42}

    Auth: X-Webhook-Secret, or a JWT for the same user (admins may register anyone).
    """
    data = request.get_json(silent=True) or {}
    user_id = safe_int_or_none(data.get("user_id"))

    if not _webhook_authorized():
        verify_jwt_in_request()
        caller = User.query.get(int(get_jwt_identity()))
        if user_id is None and caller:
            user_id = caller.id
        if not caller or (caller.id != user_id and not caller.is_admin):
            return jsonify({"error": "Not allowed"}), 403

    if user_id is None:
        return jsonify({"error": "user_id is required"}), 400

    referred = User.query.get(user_id)
    if not referred:
        return jsonify({"error": "user not found"}), 404

    if not referred.referred_by:
        return jsonify({"success": False, "message": "User was not referred"}), 200

    try:
        bonus = register_bonus(referred)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[affiliate/bonuses/register] user {user_id}: {e}")
        return jsonify({"error": "Failed to register bonus"}), 500

    if bonus is None:
        return jsonify({"success": False, "message": "Referrer not found"}), 200

    return jsonify({"success": True, "bonus": bonus.to_dict()}), 200


@affiliate_bp.route("/bonuses/apply", methods=["POST"])
@jwt_required()
def apply():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    try:
        expiry, remaining = apply_bonus(user, current_app.config.get("AFFILIATE_BONUS_DAYS", 30))
    except AffiliateError as e:
        return jsonify({"error": str(e), **e.extra}), e.status_code

    return jsonify({
        "success": True,
        "expiryDate": expiry.isoformat(),
        "remainingBonuses": remaining,
    }), 200
