# treino/models/user.py
import secrets
from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash

from .. import db

PLAN_TYPES = ("free", "paid", "admin")


def generate_affiliate_code() -> str:
    """Short, URL-safe, upper-case referral code (e.g. 'K7Q2M9XA')."""
    while True:
        code = secrets.token_hex(4).upper()
        if not User.query.filter_by(affiliate_code=code).first():
            return code


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    phone = db.Column(db.String(30))

    # plan / subscription
    plan_type = db.Column(
        db.Enum(*PLAN_TYPES, name="plan_type_enum"),
        nullable=False,
        default="free",
    )
    expiry_date = db.Column(db.DateTime)
    stripe_customer_id = db.Column(db.String(255), index=True)
    subscription_id = db.Column(db.String(255), index=True)
    subscription_status = db.Column(db.String(50))
    last_payment_date = db.Column(db.DateTime)

    # affiliate program
    affiliate_code = db.Column(db.String(20), unique=True, nullable=False)
    referred_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    affiliate_bonuses = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    referrer = db.relationship("User", remote_side=[id], backref="referrals")

    @property
    def is_admin(self) -> bool:
        return self.plan_type == "admin"

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "plan_type": self.plan_type,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "subscription_status": self.subscription_status,
            "last_payment_date": self.last_payment_date.isoformat()
            if self.last_payment_date
            else None,
            "affiliate_code": self.affiliate_code,
            "referred_by": self.referred_by,
            "affiliate_bonuses": self.affiliate_bonuses or 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
