import logging
from datetime import datetime, timedelta

from .. import db
from ..models.affiliate import AffiliateBonus, AffiliateInvite
from ..models.user import User
from ..utils import clean_str

logger = logging.getLogger(__name__)


class AffiliateError(Exception):
    def __init__(self, message, status_code=400, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.extra = extra


def invite_link(base_url: str, code: str) -> str:
    return f"{base_url.rstrip('/')}/register?ref={code}"


def attach_referral(user: User, code: str) -> bool:
    """Link a freshly registered user to the owner of `code`. Caller commits."""
    code = clean_str(code).upper()
    if not code:
        return False
    referrer = User.query.filter_by(affiliate_code=code).first()
    if not referrer or referrer.id == user.id:
        return False

    user.referred_by = referrer.id
    invite = (
        AffiliateInvite.query.filter_by(sender_id=referrer.id, email=user.email, status="pending")
        .order_by(AffiliateInvite.created_at.desc())
        .first()
    )
    if invite:
        invite.status = "accepted"
    return True


def create_invite(sender: User, email: str, base_url: str):
    """Store the invite and "send" it. Delivery is simulated by logging the link."""
    invite = AffiliateInvite(sender_id=sender.id, email=email, invite_code=sender.affiliate_code)
    db.session.add(invite)
    db.session.commit()

    link = invite_link(base_url, sender.affiliate_code)
    logger.info("[affiliate] invite %s -> %s link=%s", sender.id, email, link)
    return invite, link


def register_bonus(referred: User):
    """
    Credit the referrer of `referred` with one bonus.

    One bonus per referral: a second call returns the existing row and does
    not touch the referrer's counter. Returns None when nobody referred the
    user. Caller commits.
    """
    if not referred.referred_by:
        return None

    existing = AffiliateBonus.query.filter_by(referred_id=referred.id).first()
    if existing:
        return existing

    referrer = User.query.get(referred.referred_by)
    if not referrer:
        return None

    bonus = AffiliateBonus(referrer_id=referrer.id, referred_id=referred.id, status="pending")
    referrer.affiliate_bonuses = int(referrer.affiliate_bonuses or 0) + 1
    db.session.add(bonus)
    logger.info("[affiliate] bonus registered referrer=%s referred=%s", referrer.id, referred.id)
    return bonus


def apply_bonus(user: User, bonus_days: int, now=None):
    """
    Spend one bonus: extend the user's expiry by `bonus_days` from the later
    of now and the current expiry. Commits.
    """
    available = int(user.affiliate_bonuses or 0)
    if available <= 0:
        raise AffiliateError("No bonuses available", bonusesCount=available)

    bonus = (
        AffiliateBonus.query.filter_by(referrer_id=user.id, status="pending")
        .order_by(AffiliateBonus.created_at.asc(), AffiliateBonus.id.asc())
        .first()
    )
    if not bonus:
        raise AffiliateError("Bonus cannot be applied", bonusesCount=available)

    now = now or datetime.utcnow()
    start = user.expiry_date if user.expiry_date and user.expiry_date > now else now
    user.expiry_date = start + timedelta(days=bonus_days)
    user.affiliate_bonuses = available - 1
    bonus.status = "applied"
    bonus.applied_at = now

    db.session.commit()
    return user.expiry_date, user.affiliate_bonuses
