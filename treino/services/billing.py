from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import stripe

from .. import db
from ..errors import ConfigurationError, require_settings
from ..models.payment import PaymentTransaction
from ..models.user import User
from ..utils import safe_int_or_none
from .affiliate import register_bonus

logger = logging.getLogger(__name__)

# Inline price used when no STRIPE_PRICE_ID is configured: R$ 99,00 / year.
DEFAULT_PRICE = {
    "currency": "brl",
    "product_data": {
        "name": "Plano Premium Treino na Mão",
        "description": "Acesso a todos os recursos do Treino na Mão por 1 ano",
    },
    "unit_amount": 9900,
    "recurring": {"interval": "year"},
}

# Signed webhook timestamps older than this are rejected as replays.
WEBHOOK_TOLERANCE_SECONDS = stripe.Webhook.DEFAULT_TOLERANCE


class BillingError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


class WebhookSignatureError(BillingError):
    pass


@dataclass(frozen=True)
class StripeConfig:
    secret_key: str
    webhook_secret: Optional[str]
    price_id: Optional[str]
    app_url: Optional[str]


def _get_stripe_config(config) -> StripeConfig:
    """Fail closed: no secret key, no billing."""
    (secret_key,) = require_settings(config, "STRIPE_SECRET_KEY")
    return StripeConfig(
        secret_key=str(secret_key),
        webhook_secret=config.get("STRIPE_WEBHOOK_SECRET") or None,
        price_id=config.get("STRIPE_PRICE_ID") or None,
        app_url=config.get("APP_URL") or None,
    )


def one_year_from(dt: datetime) -> datetime:
    try:
        return dt.replace(year=dt.year + 1)
    except ValueError:  # Feb 29
        return dt.replace(year=dt.year + 1, day=28)


def _get(obj: Any, key: str, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _from_timestamp(ts) -> Optional[datetime]:
    try:
        return datetime.utcfromtimestamp(int(ts)) if ts else None
    except (TypeError, ValueError, OverflowError):
        return None


class StripeService:
    def __init__(self, config) -> None:
        cfg = _get_stripe_config(config)
        stripe.api_key = cfg.secret_key
        self.cfg = cfg

    # ------------------------------
    # Checkout
    # ------------------------------
    def ensure_customer(self, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer = stripe.Customer.create(
            email=user.email,
            name=user.full_name,
            metadata={"user_id": str(user.id)},
        )
        user.stripe_customer_id = str(customer.id)
        db.session.commit()
        logger.info("stripe customer %s created for user %s", customer.id, user.id)
        return user.stripe_customer_id

    def create_checkout_session(self, *, user: User, origin: Optional[str] = None) -> str:
        base = (self.cfg.app_url or origin or "http://localhost:3000").rstrip("/")
        customer_id = self.ensure_customer(user)

        if self.cfg.price_id:
            line_item = {"price": self.cfg.price_id, "quantity": 1}
        else:
            line_item = {"price_data": DEFAULT_PRICE, "quantity": 1}

        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[line_item],
            mode="subscription",
            success_url=f"{base}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base}/dashboard",
            customer=customer_id,
            client_reference_id=str(user.id),
            metadata={"userId": str(user.id)},
        )

        _record_transaction(
            user_id=user.id,
            transaction_id=str(session.id),
            status="pending",
        )
        db.session.commit()
        return str(session.url)

    def retrieve_checkout_session(self, session_id: str):
        return stripe.checkout.Session.retrieve(session_id)

    # ------------------------------
    # Webhooks
    # ------------------------------
    def construct_event(self, *, payload: bytes, sig_header: Optional[str]) -> dict:
        if not self.cfg.webhook_secret:
            raise ConfigurationError(["STRIPE_WEBHOOK_SECRET"])
        if not sig_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                text, sig_header, self.cfg.webhook_secret, tolerance=WEBHOOK_TOLERANCE_SECONDS
            )
            return json.loads(text)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureError(f"Invalid webhook signature: {e}") from e


def _record_transaction(*, user_id, transaction_id, status, subscription_id=None,
                        amount_cents=None, currency=None, payment_method=None):
    """Insert once per provider transaction id; update status on repeats. Caller commits."""
    row = PaymentTransaction.query.filter_by(transaction_id=transaction_id).first()
    if row is None:
        row = PaymentTransaction(user_id=user_id, transaction_id=transaction_id)
        db.session.add(row)
    row.status = status
    if subscription_id:
        row.subscription_id = subscription_id
    if amount_cents is not None:
        row.amount = amount_cents / 100
    if currency:
        row.currency = currency
    if payment_method:
        row.payment_method = payment_method
    return row


def activate_subscription(user: User, *, subscription_id=None, status="active",
                          expiry: Optional[datetime] = None, now=None):
    now = now or datetime.utcnow()
    if user.plan_type != "admin":
        user.plan_type = "paid"
    user.expiry_date = expiry or one_year_from(now)
    if subscription_id:
        user.subscription_id = subscription_id
    user.subscription_status = status
    user.last_payment_date = now


# ------------------------------
# Event processing
# ------------------------------
def _handle_checkout_completed(session: dict, now) -> str:
    user_id = _get(session, "client_reference_id") or _get(_get(session, "metadata") or {}, "userId")
    if not user_id:
        raise BillingError("User id not found in event")

    user_pk = safe_int_or_none(user_id)
    if user_pk is None:
        raise BillingError(f"Invalid user id in event: {user_id!r}")
    user = User.query.get(user_pk)
    if not user:
        raise BillingError("User not found", status_code=404)

    if _get(session, "payment_status") != "paid":
        logger.info("checkout %s completed without payment (%s)", _get(session, "id"),
                    _get(session, "payment_status"))
        return "ignored"

    subscription_id = _get(session, "subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")

    activate_subscription(user, subscription_id=subscription_id, status="active", now=now)
    if _get(session, "customer") and not user.stripe_customer_id:
        user.stripe_customer_id = _get(session, "customer")

    methods = _get(session, "payment_method_types") or []
    _record_transaction(
        user_id=user.id,
        transaction_id=_get(session, "id"),
        subscription_id=subscription_id,
        amount_cents=_get(session, "amount_total"),
        currency=_get(session, "currency"),
        status="success",
        payment_method=methods[0] if methods else None,
    )
    register_bonus(user)
    return "activated"


def _invoice_period_end(invoice: dict) -> Optional[datetime]:
    lines = _get(_get(invoice, "lines") or {}, "data") or []
    ends = [_get(_get(line, "period") or {}, "end") for line in lines]
    ends = [e for e in ends if e]
    return _from_timestamp(max(ends)) if ends else None


def _handle_invoice_paid(invoice: dict, now) -> str:
    subscription_id = _get(invoice, "subscription")
    if not subscription_id:
        return "ignored"

    user = None
    customer_id = _get(invoice, "customer")
    if customer_id:
        user = User.query.filter_by(stripe_customer_id=customer_id).first()
    if user is None:
        user = User.query.filter_by(subscription_id=subscription_id).first()
    if user is None:
        logger.error("no user for subscription %s", subscription_id)
        return "user_not_found"

    activate_subscription(
        user,
        subscription_id=subscription_id,
        status="active",
        expiry=_invoice_period_end(invoice),
        now=now,
    )
    _record_transaction(
        user_id=user.id,
        transaction_id=_get(invoice, "id"),
        subscription_id=subscription_id,
        amount_cents=_get(invoice, "amount_paid"),
        currency=_get(invoice, "currency"),
        status="success",
        payment_method=_get(invoice, "payment_method_type") or "unknown",
    )
    return "renewed"


def _handle_subscription_deleted(subscription: dict, now) -> str:
    user = User.query.filter_by(subscription_id=_get(subscription, "id")).first()
    if not user:
        logger.error("no user for canceled subscription %s", _get(subscription, "id"))
        return "user_not_found"
    user.subscription_status = "canceled"
    return "canceled"


EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "invoice.payment_succeeded": _handle_invoice_paid,
    "customer.subscription.deleted": _handle_subscription_deleted,
}


def process_stripe_event(event: dict, now=None) -> str:
    """Apply one verified webhook event. Commits; rolls back and re-raises on failure."""
    handler = EVENT_HANDLERS.get(_get(event, "type"))
    if handler is None:
        return "unhandled"

    obj = _get(_get(event, "data") or {}, "object") or {}
    try:
        result = handler(obj, now or datetime.utcnow())
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("stripe event %s (%s): %s", _get(event, "id"), _get(event, "type"), result)
    return result


def payment_status_for(checkout_session, user: User, now=None) -> str:
    """
    Resolve a checkout session to paid/failed/pending for its owner, activating
    the plan when the webhook has not done so yet.
    """
    owner = _get(checkout_session, "client_reference_id") or _get(
        _get(checkout_session, "metadata") or {}, "userId"
    )
    if str(owner) != str(user.id):
        raise BillingError("Access denied", status_code=403)

    payment_status = _get(checkout_session, "payment_status")
    if payment_status == "paid":
        if user.plan_type not in ("paid", "admin"):
            subscription_id = _get(checkout_session, "subscription")
            if isinstance(subscription_id, dict):
                subscription_id = subscription_id.get("id")
            activate_subscription(user, subscription_id=subscription_id, now=now)
            register_bonus(user)
            db.session.commit()
        return "paid"
    if payment_status == "unpaid":
        return "failed"
    return "pending"
