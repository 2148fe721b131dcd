# treino/models/feedback.py
from datetime import datetime
from .. import db


# -----------------------------
# User feedback
# -----------------------------
class UserFeedback(db.Model):
    __tablename__ = "user_feedback"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    email = db.Column(db.String(255))
    feedback_type = db.Column(db.String(30), nullable=False, default="suggestion")
    message = db.Column(db.Text, nullable=False)
    device_info = db.Column(db.JSON)
    status = db.Column(
        db.Enum("pending", "reviewed", "resolved", name="feedback_status"),
        nullable=False,
        default="pending",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "email": self.email,
            "feedback_type": self.feedback_type,
            "message": self.message,
            "device_info": self.device_info,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# -----------------------------
# Global settings (key/value)
# -----------------------------
class AppSetting(db.Model):
    __tablename__ = "app_settings"

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(100), unique=True, nullable=False)
    setting_value = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255))
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @classmethod
    def get_int(cls, key, default):
        row = cls.query.filter_by(setting_key=key).first()
        if not row:
            return default
        try:
            return int(row.setting_value)
        except (TypeError, ValueError):
            return default
