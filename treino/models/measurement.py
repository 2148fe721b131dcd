# treino/models/measurement.py
from datetime import datetime
from .. import db

# Numeric body metrics, in display order. Units: kg, cm, or % (body fat).
METRICS = (
    "weight",
    "height",
    "body_fat_percentage",
    "muscle_mass",
    "chest",
    "waist",
    "hips",
    "arms",
    "thighs",
    "calves",
    "shoulders",
    "neck",
)


class BodyMeasurement(db.Model):
    __tablename__ = "body_measurements"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    measurement_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    weight = db.Column(db.Numeric(6, 2))
    height = db.Column(db.Numeric(6, 2))
    body_fat_percentage = db.Column(db.Numeric(5, 2))
    muscle_mass = db.Column(db.Numeric(6, 2))
    chest = db.Column(db.Numeric(6, 2))
    waist = db.Column(db.Numeric(6, 2))
    hips = db.Column(db.Numeric(6, 2))
    arms = db.Column(db.Numeric(6, 2))
    thighs = db.Column(db.Numeric(6, 2))
    calves = db.Column(db.Numeric(6, 2))
    shoulders = db.Column(db.Numeric(6, 2))
    neck = db.Column(db.Numeric(6, 2))
    notes = db.Column(db.String(500))

    user = db.relationship("User", backref="body_measurements")

    def to_dict(self):
        data = {
            "id": self.id,
            "measurement_date": self.measurement_date.isoformat()
            if self.measurement_date
            else None,
            "notes": self.notes,
        }
        for metric in METRICS:
            value = getattr(self, metric)
            data[metric] = float(value) if value is not None else None
        return data
