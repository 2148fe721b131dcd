# treino/routes/assessment_routes.py
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..models.assessment import Assessment
from ..utils import clean_str, current_user_id, safe_float_or_none, safe_int_or_none

assessments_bp = Blueprint("assessments", __name__)

EXPERIENCE_LEVELS = ("beginner", "intermediate", "advanced")


def _as_list(value):
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


@assessments_bp.route("", methods=["GET"])
@jwt_required()
def list_assessments():
    rows = (
        Assessment.query.filter_by(user_id=current_user_id())
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .all()
    )
    return jsonify({"assessments": [a.to_dict() for a in rows]}), 200


@assessments_bp.route("", methods=["POST"])
@jwt_required()
def create_assessment():
    """
    Body:
    {
      "height": 175, "weight": 72.5, "age": 31,
      "experience_level": "beginner|intermediate|advanced",
      "fitness_goal": "Hipertrofia",
      "health_limitations": ["joelho"],
      "available_equipment": ["halteres", "barra"],
      "workout_days_per_week": 4,
      "workout_duration": 60,
      "body_measurements": {"chest": 98, "waist": 82}
    }
    """
    data = request.get_json(silent=True) or {}

    level = clean_str(data.get("experience_level")).lower()
    if level not in EXPERIENCE_LEVELS:
        return jsonify({"error": f"experience_level must be one of {', '.join(EXPERIENCE_LEVELS)}"}), 400

    goal = clean_str(data.get("fitness_goal"))
    if not goal:
        return jsonify({"error": "fitness_goal is required"}), 400

    days = safe_int_or_none(data.get("workout_days_per_week"))
    if days is not None and not 1 <= days <= 7:
        return jsonify({"error": "workout_days_per_week must be between 1 and 7"}), 400

    measurements = data.get("body_measurements")
    if measurements is not None and not isinstance(measurements, dict):
        return jsonify({"error": "body_measurements must be an object"}), 400

    assessment = Assessment(
        user_id=current_user_id(),
        height=safe_float_or_none(data.get("height")),
        weight=safe_float_or_none(data.get("weight")),
        age=safe_int_or_none(data.get("age")),
        experience_level=level,
        fitness_goal=goal[:100],
        health_limitations=_as_list(data.get("health_limitations")),
        available_equipment=_as_list(data.get("available_equipment")),
        workout_days_per_week=days,
        workout_duration=safe_int_or_none(data.get("workout_duration")),
        body_measurements=measurements or None,
    )

    try:
        db.session.add(assessment)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[assessments] insert failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"assessment": assessment.to_dict()}), 201


@assessments_bp.route("/<int:assessment_id>", methods=["GET"])
@jwt_required()
def get_assessment(assessment_id: int):
    assessment = Assessment.query.filter_by(
        id=assessment_id, user_id=current_user_id()
    ).first()
    if not assessment:
        return jsonify({"error": "assessment not found"}), 404
    data = assessment.to_dict()
    data["suggestions"] = [s.to_dict() for s in assessment.suggestions]
    return jsonify({"assessment": data}), 200
