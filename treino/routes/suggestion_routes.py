# treino/routes/suggestion_routes.py

import re

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..models.assessment import AISuggestedWorkout, Assessment, WorkoutChatHistory
from ..models.workout import WorkoutExercise, WorkoutList
from ..services.access import access_required
from ..services.inference import InferenceClient, InferenceError, InferenceTimeout
from ..services.suggestions import (
    build_assessment_prompt,
    build_chat_messages,
    offline_workouts,
    parse_workouts,
)
from ..utils import clean_str, current_user_id, safe_int, safe_int_or_none

suggestions_bp = Blueprint("suggestions", __name__)

CHAT_FALLBACK_REPLY = (
    "Desculpe, não consegui processar sua pergunta agora. "
    "Tente novamente em alguns instantes."
)

_DIGITS = re.compile(r"\d+")


# ------------------------------
# Helpers
# ------------------------------
def _own_assessment(assessment_id):
    if assessment_id is None:
        return None
    return Assessment.query.filter_by(id=assessment_id, user_id=current_user_id()).first()


def _own_suggestion(suggestion_id):
    return AISuggestedWorkout.query.filter_by(
        id=suggestion_id, user_id=current_user_id()
    ).first()


def _seconds(value, default=60):
    """'90s' / '60 segundos' / 90 -> int seconds."""
    if isinstance(value, (int, float)):
        return max(0, int(value))
    match = _DIGITS.search(str(value or ""))
    return int(match.group()) if match else default


def _inference_client():
    return InferenceClient.from_config(current_app.config)


# ------------------------------
# Generation
# ------------------------------
@suggestions_bp.route("/generate", methods=["POST"])
@access_required
def generate():
    data = request.get_json(silent=True) or {}

    assessment = _own_assessment(safe_int_or_none(data.get("assessment_id")))
    if not assessment:
        return jsonify({"error": "assessment not found"}), 404

    client = _inference_client()
    prompt = build_assessment_prompt(assessment)

    try:
        text = client.generate(prompt)
    except InferenceTimeout as e:
        current_app.logger.warning(f"[suggestions/generate] timeout: {e}")
        return jsonify({
            "error": "The AI service took too long to answer. Please try again.",
            "details": str(e),
        }), 504
    except InferenceError as e:
        current_app.logger.error(f"[suggestions/generate] upstream error: {e} ({e.status_code})")
        return jsonify({
            "error": "Failed to generate workout suggestions",
            "details": e.details or str(e),
        }), 500

    workouts, used_fallback = parse_workouts(text)
    metadata = {
        "source": "fallback" if used_fallback else "ai",
        "model": client.model,
        "fallback": used_fallback,
    }

    try:
        rows = []
        for workout in workouts:
            row = AISuggestedWorkout(
                assessment_id=assessment.id,
                user_id=assessment.user_id,
                workout_name=str(workout["name"])[:200],
                workout_description=str(workout["description"])[:1000],
                exercises=workout["exercises"],
                workout_metadata=metadata,
            )
            db.session.add(row)
            rows.append(row)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[suggestions/generate] save failed: {e}")
        return jsonify({"error": "Failed to save workout suggestions"}), 500

    return jsonify({
        "success": True,
        "fallback": used_fallback,
        "workouts": [r.to_dict() for r in rows],
    }), 200


@suggestions_bp.route("/offline", methods=["POST"])
@jwt_required()
def offline():
    """
    Body: {"level": "iniciante", "goals": ["hipertrofia"]} or {"assessment_id": 3}
    """
    data = request.get_json(silent=True) or {}

    level = data.get("level")
    goals = data.get("goals")

    assessment = _own_assessment(safe_int_or_none(data.get("assessment_id")))
    if assessment is not None:
        level = level or assessment.experience_level
        goals = goals or [assessment.fitness_goal]

    return jsonify({"success": True, "workouts": offline_workouts(level, goals)}), 200


# ------------------------------
# Stored suggestions
# ------------------------------
@suggestions_bp.route("", methods=["GET"])
@jwt_required()
def list_suggestions():
    query = AISuggestedWorkout.query.filter_by(user_id=current_user_id())
    assessment_id = safe_int_or_none(request.args.get("assessment_id"))
    if assessment_id is not None:
        query = query.filter_by(assessment_id=assessment_id)
    rows = query.order_by(AISuggestedWorkout.created_at.desc(), AISuggestedWorkout.id.desc()).all()
    return jsonify({"suggestions": [r.to_dict() for r in rows]}), 200


@suggestions_bp.route("/<int:suggestion_id>/feedback", methods=["POST"])
@jwt_required()
def feedback(suggestion_id: int):
    row = _own_suggestion(suggestion_id)
    if not row:
        return jsonify({"error": "suggestion not found"}), 404

    data = request.get_json(silent=True) or {}
    score = safe_int_or_none(data.get("score"))
    if score is None or not 1 <= score <= 5:
        return jsonify({"error": "score must be between 1 and 5"}), 400

    row.user_feedback = score
    row.user_feedback_notes = (data.get("notes") or None)
    db.session.commit()
    return jsonify({"suggestion": row.to_dict()}), 200


@suggestions_bp.route("/<int:suggestion_id>/select", methods=["POST"])
@jwt_required()
def select(suggestion_id: int):
    row = _own_suggestion(suggestion_id)
    if not row:
        return jsonify({"error": "suggestion not found"}), 404

    wl = WorkoutList(
        user_id=row.user_id,
        name=row.workout_name[:100],
        description=(row.workout_description or "")[:500] or None,
    )
    for position, ex in enumerate(row.exercises or []):
        wl.exercises.append(
            WorkoutExercise(
                position=position,
                name=str(ex.get("name") or "Exercício")[:100],
                sets=max(1, safe_int(ex.get("sets"), 3)),
                reps=str(ex.get("reps") or "10")[:30],
                rest_seconds=_seconds(ex.get("rest")),
                notes=(str(ex.get("execution"))[:500] if ex.get("execution") else None),
            )
        )

    try:
        row.selected = True
        db.session.add(wl)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[suggestions/select] {suggestion_id} failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"suggestion": row.to_dict(), "list": wl.to_dict()}), 201


# ------------------------------
# Chat
# ------------------------------
@suggestions_bp.route("/chat", methods=["POST"])
@jwt_required()
def chat():
    """
    Body:
    {
      "message": "Posso trocar o supino por flexões?",
      "workout": {...},
      "assessment_id": 3,          // optional
      "history": [{"type": "user|assistant", "content": "..."}]
    }
    """
    data = request.get_json(silent=True) or {}

    message = clean_str(data.get("message"))
    workout = data.get("workout")
    if not message or not workout:
        return jsonify({"error": "message and workout are required"}), 400

    assessment = _own_assessment(safe_int_or_none(data.get("assessment_id")))
    history = data.get("history") if isinstance(data.get("history"), list) else []

    messages = build_chat_messages(message, workout, assessment=assessment, history=history)

    try:
        reply = _inference_client().chat(messages)
    except InferenceError as e:
        current_app.logger.error(f"[suggestions/chat] inference failed: {e}")
        return jsonify({"error": "Failed to process chat message", "response": CHAT_FALLBACK_REPLY}), 500

    if not reply:
        reply = CHAT_FALLBACK_REPLY

    try:
        db.session.add(
            WorkoutChatHistory(
                user_id=current_user_id(),
                assessment_id=assessment.id if assessment else None,
                workout_details=workout,
                user_message=message,
                ai_response=reply,
            )
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[suggestions/chat] history save failed: {e}")

    return jsonify({"response": reply}), 200
