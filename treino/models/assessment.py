# treino/models/assessment.py
from datetime import datetime
from .. import db


# -----------------------------
# Physical assessment
# -----------------------------
class Assessment(db.Model):
    __tablename__ = "user_assessments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    height = db.Column(db.Numeric(5, 2))  # cm
    weight = db.Column(db.Numeric(5, 2))  # kg
    age = db.Column(db.Integer)
    experience_level = db.Column(db.String(30))
    fitness_goal = db.Column(db.String(100))
    health_limitations = db.Column(db.JSON)
    available_equipment = db.Column(db.JSON)
    workout_days_per_week = db.Column(db.Integer)
    workout_duration = db.Column(db.Integer)  # minutes
    body_measurements = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", backref="assessments")
    suggestions = db.relationship(
        "AISuggestedWorkout", back_populates="assessment", cascade="all, delete-orphan"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "height": float(self.height) if self.height is not None else None,
            "weight": float(self.weight) if self.weight is not None else None,
            "age": self.age,
            "experience_level": self.experience_level,
            "fitness_goal": self.fitness_goal,
            "health_limitations": self.health_limitations or [],
            "available_equipment": self.available_equipment or [],
            "workout_days_per_week": self.workout_days_per_week,
            "workout_duration": self.workout_duration,
            "body_measurements": self.body_measurements,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# -----------------------------
# AI output
# -----------------------------
class AISuggestedWorkout(db.Model):
    __tablename__ = "ai_suggested_workouts"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(
        db.Integer, db.ForeignKey("user_assessments.id"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    workout_name = db.Column(db.String(200), nullable=False)
    workout_description = db.Column(db.String(1000))
    exercises = db.Column(db.JSON, nullable=False, default=list)
    workout_metadata = db.Column(db.JSON)
    selected = db.Column(db.Boolean, nullable=False, default=False)
    user_feedback = db.Column(db.Integer)  # 1..5
    user_feedback_notes = db.Column(db.String(1000))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    assessment = db.relationship("Assessment", back_populates="suggestions")
    user = db.relationship("User", backref="ai_suggested_workouts")

    def to_dict(self):
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "workout_name": self.workout_name,
            "workout_description": self.workout_description,
            "exercises": self.exercises or [],
            "workout_metadata": self.workout_metadata or {},
            "selected": bool(self.selected),
            "user_feedback": self.user_feedback,
            "user_feedback_notes": self.user_feedback_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class WorkoutChatHistory(db.Model):
    __tablename__ = "workout_chat_history"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    assessment_id = db.Column(
        db.Integer, db.ForeignKey("user_assessments.id", ondelete="SET NULL")
    )
    workout_details = db.Column(db.JSON)
    user_message = db.Column(db.Text, nullable=False)
    ai_response = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", backref="chat_history")
