# treino/routes/goal_routes.py
from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..models.goal import FitnessGoal
from ..utils import clean_str, current_user_id, parse_datetime, safe_float_or_none

goals_bp = Blueprint("goals", __name__)

# Goal types where reaching the target means going down to it.
DECREASING_GOALS = {"weight", "body_fat_percentage", "waist", "hips"}


def _reached(goal: FitnessGoal) -> bool:
    if goal.current_value is None:
        return False
    if goal.goal_type in DECREASING_GOALS:
        return float(goal.current_value) <= float(goal.goal_value)
    return float(goal.current_value) >= float(goal.goal_value)


@goals_bp.route("", methods=["GET"])
@jwt_required()
def list_goals():
    goals = (
        FitnessGoal.query.filter_by(user_id=current_user_id())
        .order_by(FitnessGoal.achieved.asc(), FitnessGoal.created_at.desc())
        .all()
    )
    return jsonify({"goals": [g.to_dict() for g in goals]}), 200


@goals_bp.route("", methods=["POST"])
@jwt_required()
def create_goal():
    data = request.get_json(silent=True) or {}

    goal_type = clean_str(data.get("goal_type"))
    goal_value = safe_float_or_none(data.get("goal_value"))
    if not goal_type or goal_value is None:
        return jsonify({"error": "goal_type and goal_value are required"}), 400

    try:
        deadline = parse_datetime(data.get("deadline"))
    except ValueError:
        return jsonify({"error": "deadline must be an ISO date"}), 400

    goal = FitnessGoal(
        user_id=current_user_id(),
        goal_type=goal_type[:50],
        goal_value=goal_value,
        current_value=safe_float_or_none(data.get("current_value")),
        deadline=deadline.date() if deadline else None,
    )
    if _reached(goal):
        goal.achieved = True
        goal.achieved_at = datetime.utcnow()
    db.session.add(goal)
    db.session.commit()

    return jsonify({"goal": goal.to_dict()}), 201


@goals_bp.route("/<int:goal_id>", methods=["PUT"])
@jwt_required()
def update_goal(goal_id: int):
    goal = FitnessGoal.query.filter_by(id=goal_id, user_id=current_user_id()).first()
    if not goal:
        return jsonify({"error": "goal not found"}), 404

    data = request.get_json(silent=True) or {}
    current_value = safe_float_or_none(data.get("current_value"))
    if current_value is None:
        return jsonify({"error": "current_value is required"}), 400

    goal.current_value = current_value

    if not goal.achieved and _reached(goal):
        goal.achieved = True
        goal.achieved_at = datetime.utcnow()
    db.session.commit()

    return jsonify({"goal": goal.to_dict()}), 200


@goals_bp.route("/<int:goal_id>", methods=["DELETE"])
@jwt_required()
def delete_goal(goal_id: int):
    goal = FitnessGoal.query.filter_by(id=goal_id, user_id=current_user_id()).first()
    if not goal:
        return jsonify({"error": "goal not found"}), 404
    db.session.delete(goal)
    db.session.commit()
    return jsonify({"message": "Goal deleted"}), 200
