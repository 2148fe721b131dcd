from datetime import datetime, timedelta

from treino import db
from treino.models.affiliate import AffiliateBonus, AffiliateInvite
from treino.models.user import User
from treino.services.affiliate import apply_bonus

HOOK = {"X-Webhook-Secret": "affiliate-hook-secret"}


def test_overview_and_invite(client, user, headers):
    resp = client.post("/api/affiliate/invites", json={"email": "Bia@Example.com"}, headers=headers)
    assert resp.status_code == 201
    link = resp.get_json()["link"]
    assert link == f"http://localhost:3000/register?ref={user.affiliate_code}"
    assert AffiliateInvite.query.filter_by(email="bia@example.com").one().status == "pending"

    body = client.get("/api/affiliate", headers=headers).get_json()
    assert body["affiliateCode"] == user.affiliate_code
    assert body["bonusesCount"] == 0
    assert body["referralsCount"] == 0
    assert len(body["invites"]) == 1


def test_invite_validation(client, user, headers):
    assert client.post("/api/affiliate/invites", json={"email": "nope"}, headers=headers).status_code == 400
    assert client.post("/api/affiliate/invites", json={"email": user.email}, headers=headers).status_code == 400


def test_register_bonus_once_per_referral(client, make_user):
    referrer = make_user()
    referred = make_user(referred_by=referrer.id)

    for _ in range(2):
        resp = client.post("/api/affiliate/bonuses/register", json={"user_id": referred.id}, headers=HOOK)
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

    db.session.expire_all()
    assert User.query.get(referrer.id).affiliate_bonuses == 1
    assert AffiliateBonus.query.count() == 1


def test_register_bonus_for_unreferred_user(client, user):
    resp = client.post("/api/affiliate/bonuses/register", json={"user_id": user.id}, headers=HOOK)
    assert resp.status_code == 200
    assert resp.get_json()["success"] is False


def test_register_bonus_auth(client, make_user, auth_headers, admin):
    referrer = make_user()
    referred = make_user(referred_by=referrer.id)
    stranger = make_user()

    resp = client.post("/api/affiliate/bonuses/register", json={"user_id": referred.id})
    assert resp.status_code == 401
    resp = client.post(
        "/api/affiliate/bonuses/register",
        json={"user_id": referred.id},
        headers={"X-Webhook-Secret": "wrong"},
    )
    assert resp.status_code == 401

    resp = client.post(
        "/api/affiliate/bonuses/register", json={"user_id": referred.id}, headers=auth_headers(stranger)
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/affiliate/bonuses/register", json={"user_id": referred.id}, headers=auth_headers(referred)
    )
    assert resp.get_json()["success"] is True

    resp = client.post(
        "/api/affiliate/bonuses/register", json={"user_id": referred.id}, headers=auth_headers(admin)
    )
    assert resp.status_code == 200


def test_apply_without_bonus_is_rejected(client, headers):
    resp = client.post("/api/affiliate/bonuses/apply", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "No bonuses available", "bonusesCount": 0}


def test_apply_bonus_endpoint(client, make_user, auth_headers):
    referrer = make_user()
    referred = make_user(referred_by=referrer.id)
    client.post("/api/affiliate/bonuses/register", json={"user_id": referred.id}, headers=HOOK)

    resp = client.post("/api/affiliate/bonuses/apply", headers=auth_headers(referrer))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["remainingBonuses"] == 0
    expiry = datetime.fromisoformat(body["expiryDate"])
    assert expiry > datetime.utcnow() + timedelta(days=29)
    assert AffiliateBonus.query.one().status == "applied"


def test_apply_bonus_extends_from_later_of_now_and_expiry(make_user):
    now = datetime(2024, 1, 1)
    referrer = make_user(expiry_date=datetime(2024, 3, 1), affiliate_bonuses=2)
    for _ in range(2):
        db.session.add(AffiliateBonus(referrer_id=referrer.id, referred_id=make_user().id))
    db.session.commit()

    expiry, remaining = apply_bonus(referrer, 30, now=now)
    assert expiry == datetime(2024, 3, 31)
    assert remaining == 1

    past = make_user(expiry_date=datetime(2023, 6, 1), affiliate_bonuses=1)
    db.session.add(AffiliateBonus(referrer_id=past.id, referred_id=make_user().id))
    db.session.commit()
    expiry, remaining = apply_bonus(past, 30, now=now)
    assert expiry == datetime(2024, 1, 31)
    assert remaining == 0
