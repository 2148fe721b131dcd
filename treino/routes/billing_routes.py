# treino/routes/billing_routes.py
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

import stripe

from ..errors import ConfigurationError
from ..models.payment import PaymentTransaction
from ..services.billing import (
    BillingError,
    StripeService,
    WebhookSignatureError,
    payment_status_for,
    process_stripe_event,
)
from ..utils import clean_str, current_user, current_user_id

billing_bp = Blueprint("billing", __name__)


@billing_bp.route("/price", methods=["GET"])
def price():
    price_id = current_app.config.get("STRIPE_PRICE_ID")
    if not price_id:
        raise ConfigurationError(["STRIPE_PRICE_ID"])
    return jsonify({"priceId": price_id}), 200


@billing_bp.route("/checkout", methods=["POST"])
@jwt_required()
def checkout():
    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    service = StripeService(current_app.config)
    try:
        url = service.create_checkout_session(user=user, origin=request.headers.get("Origin"))
    except stripe.StripeError as e:
        current_app.logger.error(f"[billing/checkout] stripe error for user {user.id}: {e}")
        return jsonify({"error": "Failed to create checkout session", "details": str(e)}), 500

    return jsonify({"url": url}), 200


@billing_bp.route("/webhook", methods=["POST"])
def webhook():
    service = StripeService(current_app.config)

    try:
        event = service.construct_event(
            payload=request.get_data(),
            sig_header=request.headers.get("Stripe-Signature"),
        )
    except WebhookSignatureError as e:
        current_app.logger.warning(f"[billing/webhook] rejected: {e}")
        return jsonify({"error": str(e)}), 400

    try:
        result = process_stripe_event(event)
    except BillingError as e:
        current_app.logger.error(f"[billing/webhook] {event.get('type')}: {e}")
        return jsonify({"error": str(e)}), e.status_code
    except Exception as e:
        current_app.logger.exception(f"[billing/webhook] processing failed: {e}")
        return jsonify({"error": "Webhook processing failed"}), 500

    return jsonify({"received": True, "result": result}), 200


@billing_bp.route("/status", methods=["POST"])
@jwt_required()
def status():
    data = request.get_json(silent=True) or {}
    session_id = clean_str(data.get("session_id"))
    if not session_id:
        return jsonify({"error": "session_id is required"}), 400

    user = current_user()
    if not user:
        return jsonify({"error": "user not found"}), 404

    service = StripeService(current_app.config)
    try:
        checkout_session = service.retrieve_checkout_session(session_id)
        result = payment_status_for(checkout_session, user)
    except BillingError as e:
        return jsonify({"error": str(e)}), e.status_code
    except stripe.StripeError as e:
        current_app.logger.error(f"[billing/status] {session_id}: {e}")
        return jsonify({"error": "Failed to check payment status", "details": str(e)}), 500

    return jsonify({"status": result, "user": user.to_dict()}), 200


@billing_bp.route("/transactions", methods=["GET"])
@jwt_required()
def transactions():
    rows = (
        PaymentTransaction.query.filter_by(user_id=current_user_id())
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        .all()
    )
    return jsonify({"transactions": [t.to_dict() for t in rows]}), 200
