import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import stripe

from treino import db
from treino.models.affiliate import AffiliateBonus
from treino.models.payment import PaymentTransaction
from treino.models.user import User
from treino.services.billing import one_year_from, process_stripe_event

WEBHOOK_SECRET = "whsec_test_secret"


def _signed(payload: dict, secret: str = WEBHOOK_SECRET, timestamp=None):
    body = json.dumps(payload)
    if timestamp is None:
        timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{body}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return body, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _checkout_event(user_id, payment_status="paid", session_id="cs_test_1"):
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "client_reference_id": str(user_id) if user_id else None,
                "metadata": {},
                "customer": "cus_123",
                "subscription": "sub_123",
                "payment_status": payment_status,
                "amount_total": 9900,
                "currency": "brl",
                "payment_method_types": ["card"],
            }
        },
    }


# ------------------------------
# Webhook
# ------------------------------
def test_webhook_rejects_missing_signature(client):
    resp = client.post("/api/billing/webhook", data=json.dumps({"type": "x"}))
    assert resp.status_code == 400


def test_webhook_rejects_bad_signature(client, user):
    body, headers = _signed(_checkout_event(user.id), secret="whsec_someone_else")
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 400
    assert User.query.get(user.id).plan_type == "free"


def test_webhook_rejects_stale_signature(client, user):
    body, headers = _signed(_checkout_event(user.id), timestamp=int(time.time()) - 3600)
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 400
    assert User.query.get(user.id).plan_type == "free"


def test_webhook_without_secret_is_a_config_error(app, client):
    app.config["STRIPE_WEBHOOK_SECRET"] = None
    body, headers = _signed({"type": "x"})
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 500
    assert "STRIPE_WEBHOOK_SECRET" in resp.get_json()["details"]


def test_paid_checkout_activates_plan(client, user):
    body, headers = _signed(_checkout_event(user.id))
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["received"] is True

    db.session.expire_all()
    refreshed = User.query.get(user.id)
    assert refreshed.plan_type == "paid"
    assert refreshed.subscription_id == "sub_123"
    assert refreshed.subscription_status == "active"
    assert refreshed.expiry_date > datetime.utcnow() + timedelta(days=360)

    tx = PaymentTransaction.query.filter_by(transaction_id="cs_test_1").one()
    assert tx.status == "success"
    assert float(tx.amount) == 99.0

    # redelivery does not duplicate the transaction
    body, headers = _signed(_checkout_event(user.id))
    assert client.post("/api/billing/webhook", data=body, headers=headers).status_code == 200
    assert PaymentTransaction.query.count() == 1


def test_unpaid_checkout_is_ignored(client, user):
    body, headers = _signed(_checkout_event(user.id, payment_status="unpaid"))
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["result"] == "ignored"
    assert User.query.get(user.id).plan_type == "free"


def test_checkout_without_user_reference_is_rejected(client):
    body, headers = _signed(_checkout_event(None))
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 400


def test_checkout_with_malformed_user_reference_is_rejected(client):
    event = _checkout_event(1)
    event["data"]["object"]["client_reference_id"] = "abc"
    body, headers = _signed(event)
    resp = client.post("/api/billing/webhook", data=body, headers=headers)
    assert resp.status_code == 400
    assert "abc" in resp.get_json()["error"]


def test_paid_checkout_registers_referrer_bonus(client, make_user):
    referrer = make_user()
    referred = make_user(referred_by=referrer.id)

    body, headers = _signed(_checkout_event(referred.id))
    assert client.post("/api/billing/webhook", data=body, headers=headers).status_code == 200

    db.session.expire_all()
    assert User.query.get(referrer.id).affiliate_bonuses == 1
    assert AffiliateBonus.query.filter_by(referred_id=referred.id).one().status == "pending"


def test_invoice_paid_extends_to_period_end(user):
    user.stripe_customer_id = "cus_999"
    db.session.commit()
    period_end = datetime(2031, 6, 1)

    result = process_stripe_event(
        {
            "type": "invoice.payment_succeeded",
            "data": {
                "object": {
                    "id": "in_1",
                    "customer": "cus_999",
                    "subscription": "sub_999",
                    "amount_paid": 9900,
                    "currency": "brl",
                    "lines": {"data": [{"period": {"end": int((period_end - datetime(1970, 1, 1)).total_seconds())}}]},
                }
            },
        }
    )
    assert result == "renewed"
    assert user.plan_type == "paid"
    assert user.expiry_date == period_end
    assert user.subscription_id == "sub_999"


def test_subscription_deleted_marks_canceled(user):
    user.subscription_id = "sub_x"
    db.session.commit()
    assert process_stripe_event(
        {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_x"}}}
    ) == "canceled"
    assert user.subscription_status == "canceled"


def test_unknown_event_is_unhandled():
    assert process_stripe_event({"type": "charge.refunded", "data": {"object": {}}}) == "unhandled"


def test_one_year_from_handles_leap_day():
    assert one_year_from(datetime(2024, 2, 29, 10)) == datetime(2025, 2, 28, 10)
    assert one_year_from(datetime(2024, 3, 1)) == datetime(2025, 3, 1)


# ------------------------------
# Checkout / status
# ------------------------------
@pytest.fixture
def fake_stripe(monkeypatch):
    calls = {"customers": [], "sessions": []}

    def _customer_create(**kwargs):
        calls["customers"].append(kwargs)
        return SimpleNamespace(id="cus_new")

    def _session_create(**kwargs):
        calls["sessions"].append(kwargs)
        return SimpleNamespace(id="cs_new", url="https://checkout.stripe.test/cs_new")

    monkeypatch.setattr(stripe.Customer, "create", _customer_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", _session_create)
    return calls


def test_checkout_creates_customer_and_session(client, user, headers, fake_stripe):
    resp = client.post("/api/billing/checkout", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["url"] == "https://checkout.stripe.test/cs_new"

    assert fake_stripe["customers"][0]["email"] == user.email
    session_kwargs = fake_stripe["sessions"][0]
    assert session_kwargs["mode"] == "subscription"
    assert session_kwargs["customer"] == "cus_new"
    assert session_kwargs["client_reference_id"] == str(user.id)
    assert session_kwargs["line_items"] == [{"price": "price_test_yearly", "quantity": 1}]
    assert session_kwargs["success_url"].startswith("http://localhost:3000/payment-success")

    assert User.query.get(user.id).stripe_customer_id == "cus_new"
    assert PaymentTransaction.query.filter_by(transaction_id="cs_new").one().status == "pending"

    # existing customer is reused
    client.post("/api/billing/checkout", headers=headers)
    assert len(fake_stripe["customers"]) == 1


def test_checkout_uses_inline_price_without_price_id(app, client, headers, fake_stripe):
    app.config["STRIPE_PRICE_ID"] = None
    client.post("/api/billing/checkout", headers=headers)
    price_data = fake_stripe["sessions"][0]["line_items"][0]["price_data"]
    assert price_data["unit_amount"] == 9900
    assert price_data["recurring"] == {"interval": "year"}


def test_price_endpoint(app, client):
    assert client.get("/api/billing/price").get_json() == {"priceId": "price_test_yearly"}
    app.config["STRIPE_PRICE_ID"] = None
    assert client.get("/api/billing/price").status_code == 500


def _retrieve_returns(monkeypatch, **fields):
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", lambda session_id: dict(id=session_id, **fields))


def test_status_paid_activates_plan(client, user, headers, monkeypatch):
    _retrieve_returns(monkeypatch, client_reference_id=str(user.id), payment_status="paid", subscription="sub_1")
    resp = client.post("/api/billing/status", json={"session_id": "cs_1"}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "paid"
    assert resp.get_json()["user"]["plan_type"] == "paid"


def test_status_other_states(client, user, headers, monkeypatch):
    _retrieve_returns(monkeypatch, client_reference_id=str(user.id), payment_status="unpaid")
    assert client.post("/api/billing/status", json={"session_id": "cs_1"}, headers=headers).get_json()["status"] == "failed"

    _retrieve_returns(monkeypatch, client_reference_id=str(user.id), payment_status="no_payment_required")
    assert client.post("/api/billing/status", json={"session_id": "cs_1"}, headers=headers).get_json()["status"] == "pending"


def test_status_rejects_foreign_session(client, headers, monkeypatch):
    _retrieve_returns(monkeypatch, client_reference_id="999", payment_status="paid")
    resp = client.post("/api/billing/status", json={"session_id": "cs_1"}, headers=headers)
    assert resp.status_code == 403


def test_transactions_history(client, user, headers):
    db.session.add(PaymentTransaction(user_id=user.id, transaction_id="cs_a", status="success", amount=99))
    db.session.commit()
    rows = client.get("/api/billing/transactions", headers=headers).get_json()["transactions"]
    assert [r["transaction_id"] for r in rows] == ["cs_a"]
