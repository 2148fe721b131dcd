# treino/models/payment.py
from datetime import datetime
from .. import db


class PaymentTransaction(db.Model):
    __tablename__ = "payment_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # checkout session / invoice id from the payment provider
    transaction_id = db.Column(db.String(255), unique=True, nullable=False)
    subscription_id = db.Column(db.String(255))
    amount = db.Column(db.Numeric(10, 2))
    currency = db.Column(db.String(10))
    status = db.Column(db.String(30), nullable=False, default="pending")
    payment_method = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", backref="payment_transactions")

    def to_dict(self):
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "subscription_id": self.subscription_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
