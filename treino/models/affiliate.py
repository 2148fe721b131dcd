# treino/models/affiliate.py
from datetime import datetime
from .. import db


class AffiliateInvite(db.Model):
    __tablename__ = "affiliate_invites"

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    invite_code = db.Column(db.String(20), nullable=False)
    status = db.Column(
        db.Enum("pending", "accepted", name="affiliate_invite_status"),
        nullable=False,
        default="pending",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    sender = db.relationship("User", backref="sent_invites")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "invite_code": self.invite_code,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AffiliateBonus(db.Model):
    """A free-period credit owed to `referrer_id` because `referred_id` subscribed."""

    __tablename__ = "affiliate_bonuses"

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # one bonus per referral
    referred_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    status = db.Column(
        db.Enum("pending", "applied", name="affiliate_bonus_status"),
        nullable=False,
        default="pending",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    applied_at = db.Column(db.DateTime)

    referrer = db.relationship("User", foreign_keys=[referrer_id], backref="earned_bonuses")
    referred = db.relationship("User", foreign_keys=[referred_id])

    def to_dict(self):
        return {
            "id": self.id,
            "referrer_id": self.referrer_id,
            "referred_id": self.referred_id,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
        }
