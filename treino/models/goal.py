# treino/models/goal.py
from datetime import datetime
from .. import db


class FitnessGoal(db.Model):
    __tablename__ = "fitness_goals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    goal_type = db.Column(db.String(50), nullable=False)  # e.g. "weight", "waist", "workouts"
    goal_value = db.Column(db.Numeric(8, 2), nullable=False)
    current_value = db.Column(db.Numeric(8, 2))
    deadline = db.Column(db.Date)
    achieved = db.Column(db.Boolean, nullable=False, default=False)
    achieved_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", backref="fitness_goals")

    def to_dict(self):
        return {
            "id": self.id,
            "goal_type": self.goal_type,
            "goal_value": float(self.goal_value) if self.goal_value is not None else None,
            "current_value": float(self.current_value)
            if self.current_value is not None
            else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "achieved": bool(self.achieved),
            "achieved_at": self.achieved_at.isoformat() if self.achieved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
