# treino/models/workout.py
from datetime import datetime
from .. import db


class WorkoutList(db.Model):
    __tablename__ = "workout_lists"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user = db.relationship("User", backref="workout_lists")
    exercises = db.relationship(
        "WorkoutExercise",
        back_populates="workout_list",
        cascade="all, delete-orphan",
        order_by="WorkoutExercise.position",
    )

    def to_dict(self, with_exercises=True):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "exercise_count": len(self.exercises),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_exercises:
            data["exercises"] = [e.to_dict() for e in self.exercises]
        return data


class WorkoutExercise(db.Model):
    __tablename__ = "workout_exercises"

    id = db.Column(db.Integer, primary_key=True)
    workout_list_id = db.Column(
        db.Integer, db.ForeignKey("workout_lists.id"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)
    sets = db.Column(db.Integer, nullable=False, default=3)
    reps = db.Column(db.String(30), nullable=False, default="10")
    rest_seconds = db.Column(db.Integer, nullable=False, default=60)
    weight = db.Column(db.Numeric(6, 2))
    notes = db.Column(db.String(500))

    workout_list = db.relationship("WorkoutList", back_populates="exercises")

    def to_dict(self):
        return {
            "id": self.id,
            "position": self.position,
            "name": self.name,
            "sets": self.sets,
            "reps": self.reps,
            "rest_seconds": self.rest_seconds,
            "weight": float(self.weight) if self.weight is not None else None,
            "notes": self.notes,
        }


class WorkoutSession(db.Model):
    __tablename__ = "workout_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    workout_list_id = db.Column(
        db.Integer, db.ForeignKey("workout_lists.id", ondelete="SET NULL")
    )
    started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    ended_at = db.Column(db.DateTime)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    total_duration_seconds = db.Column(db.Integer)
    notes = db.Column(db.String(500))

    user = db.relationship("User", backref="workout_sessions")
    workout_list = db.relationship("WorkoutList", backref="sessions")
    details = db.relationship(
        "WorkoutSessionDetail",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by=lambda: [
            WorkoutSessionDetail.exercise_index,
            WorkoutSessionDetail.set_index,
        ],
    )

    def to_summary_dict(self):
        return {
            "id": self.id,
            "workout_list_id": self.workout_list_id,
            "workout_name": self.workout_list.name if self.workout_list else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "completed": bool(self.completed),
            "total_duration_seconds": self.total_duration_seconds or 0,
            "sets_logged": len(self.details),
        }


class WorkoutSessionDetail(db.Model):
    """One performed set of one exercise inside a session."""

    __tablename__ = "workout_session_details"
    __table_args__ = (
        db.UniqueConstraint(
            "session_id", "exercise_id", "set_index", name="uq_session_exercise_set"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("workout_sessions.id"), nullable=False, index=True
    )
    exercise_id = db.Column(
        db.Integer, db.ForeignKey("workout_exercises.id", ondelete="SET NULL")
    )
    exercise_index = db.Column(db.Integer, nullable=False, default=0)
    set_index = db.Column(db.Integer, nullable=False, default=0)
    reps_completed = db.Column(db.Integer, nullable=False, default=0)
    weight_used = db.Column(db.Numeric(6, 2))
    execution_time = db.Column(db.Integer, nullable=False, default=0)  # seconds
    rest_time = db.Column(db.Integer, nullable=False, default=0)  # seconds
    start_time = db.Column(db.DateTime)
    end_time = db.Column(db.DateTime)

    session = db.relationship("WorkoutSession", back_populates="details")
    exercise = db.relationship("WorkoutExercise")

    def to_dict(self):
        return {
            "id": self.id,
            "exercise_id": self.exercise_id,
            "exercise_name": self.exercise.name if self.exercise else None,
            "exercise_index": self.exercise_index,
            "set_index": self.set_index,
            "reps_completed": self.reps_completed,
            "weight_used": float(self.weight_used) if self.weight_used is not None else None,
            "execution_time": self.execution_time,
            "rest_time": self.rest_time,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }
