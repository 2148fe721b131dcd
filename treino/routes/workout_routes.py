# treino/routes/workout_routes.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..models.workout import (
    WorkoutExercise,
    WorkoutList,
    WorkoutSession,
    WorkoutSessionDetail,
)
from ..utils import (
    clean_str,
    current_user_id,
    parse_datetime,
    safe_float_or_none,
    safe_int,
    safe_int_or_none,
)

workouts_bp = Blueprint("workouts", __name__)

RECENT_LIMIT_MAX = 50


# ------------------------------
# Helpers
# ------------------------------
def _own_list(list_id: int) -> Optional[WorkoutList]:
    return WorkoutList.query.filter_by(id=list_id, user_id=current_user_id()).first()


def _own_session(session_id: int) -> Optional[WorkoutSession]:
    return WorkoutSession.query.filter_by(id=session_id, user_id=current_user_id()).first()


def _build_exercises(items: Any) -> List[WorkoutExercise]:
    """Raises ValueError when an entry has no name."""
    if not isinstance(items, list):
        raise ValueError("exercises must be a list")

    exercises = []
    for position, item in enumerate(items):
        item = item if isinstance(item, dict) else {}
        name = clean_str(item.get("name"))
        if not name:
            raise ValueError(f"exercise #{position + 1} has no name")
        exercises.append(
            WorkoutExercise(
                position=position,
                name=name,
                sets=max(1, safe_int(item.get("sets"), 3)),
                reps=str(item.get("reps") or "10")[:30],
                rest_seconds=max(0, safe_int(item.get("rest_seconds"), 60)),
                weight=safe_float_or_none(item.get("weight")),
                notes=(item.get("notes") or None),
            )
        )
    return exercises


def _session_report(session: WorkoutSession) -> Dict[str, Any]:
    per_exercise: Dict[Any, Dict[str, Any]] = {}
    total_reps = 0
    volume = 0.0
    time_under_tension = 0
    rest = 0

    for d in session.details:
        weight = float(d.weight_used) if d.weight_used is not None else 0.0
        reps = d.reps_completed or 0
        total_reps += reps
        volume += reps * weight
        time_under_tension += d.execution_time or 0
        rest += d.rest_time or 0

        key = d.exercise_id if d.exercise_id is not None else f"idx-{d.exercise_index}"
        row = per_exercise.setdefault(
            key,
            {
                "exercise_id": d.exercise_id,
                "exercise_name": d.exercise.name if d.exercise else None,
                "exercise_index": d.exercise_index,
                "sets": 0,
                "reps": 0,
                "volume": 0.0,
                "max_weight": None,
            },
        )
        row["sets"] += 1
        row["reps"] += reps
        row["volume"] += reps * weight
        if d.weight_used is not None:
            row["max_weight"] = max(row["max_weight"] or 0.0, weight)

    duration = session.total_duration_seconds
    if duration is None:
        end = session.ended_at or datetime.utcnow()
        duration = max(0, int((end - session.started_at).total_seconds()))

    return {
        "session": session.to_summary_dict(),
        "total_sets": len(session.details),
        "total_reps": total_reps,
        "total_volume": round(volume, 2),
        "time_under_tension_seconds": time_under_tension,
        "rest_seconds": rest,
        "duration_seconds": duration,
        "exercises": sorted(per_exercise.values(), key=lambda r: r["exercise_index"]),
        "sets": [d.to_dict() for d in session.details],
    }


def _close_session(session: WorkoutSession, completed: bool, now: datetime) -> None:
    session.ended_at = now
    session.completed = completed
    session.total_duration_seconds = max(0, int((now - session.started_at).total_seconds()))


# ------------------------------
# Lists
# ------------------------------
@workouts_bp.route("/lists", methods=["GET"])
@jwt_required()
def get_lists():
    lists = (
        WorkoutList.query.filter_by(user_id=current_user_id())
        .order_by(WorkoutList.created_at.desc(), WorkoutList.id.desc())
        .all()
    )
    return jsonify({"lists": [wl.to_dict(with_exercises=False) for wl in lists]}), 200


@workouts_bp.route("/lists", methods=["POST"])
@jwt_required()
def create_list():
    """
    Body:
    {
      "name": "Treino A",
      "description": "...",
      "exercises": [{"name": "Supino", "sets": 4, "reps": "8-10", "rest_seconds": 90}]
    }
    """
    data = request.get_json(silent=True) or {}

    name = clean_str(data.get("name"))
    if not name:
        return jsonify({"error": "name is required"}), 400

    try:
        exercises = _build_exercises(data.get("exercises") or [])
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    wl = WorkoutList(
        user_id=current_user_id(),
        name=name,
        description=(data.get("description") or None),
    )
    wl.exercises = exercises

    try:
        db.session.add(wl)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[workouts/lists] create failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"list": wl.to_dict()}), 201


@workouts_bp.route("/lists/<int:list_id>", methods=["GET"])
@jwt_required()
def get_list(list_id: int):
    wl = _own_list(list_id)
    if not wl:
        return jsonify({"error": "workout list not found"}), 404
    return jsonify({"list": wl.to_dict()}), 200


@workouts_bp.route("/lists/<int:list_id>", methods=["PUT"])
@jwt_required()
def update_list(list_id: int):
    wl = _own_list(list_id)
    if not wl:
        return jsonify({"error": "workout list not found"}), 404

    data = request.get_json(silent=True) or {}

    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return jsonify({"error": "name cannot be empty"}), 400
        wl.name = name
    if "description" in data:
        wl.description = data.get("description") or None

    if "exercises" in data:
        try:
            exercises = _build_exercises(data.get("exercises"))
        except ValueError as e:
            db.session.rollback()
            return jsonify({"error": str(e)}), 400
        # Past session details keep their rows; only the link is dropped.
        old_ids = [e.id for e in wl.exercises if e.id is not None]
        if old_ids:
            WorkoutSessionDetail.query.filter(
                WorkoutSessionDetail.exercise_id.in_(old_ids)
            ).update({"exercise_id": None}, synchronize_session=False)
        wl.exercises = exercises

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[workouts/lists] update {list_id} failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"list": wl.to_dict()}), 200


@workouts_bp.route("/lists/<int:list_id>", methods=["DELETE"])
@jwt_required()
def delete_list(list_id: int):
    wl = _own_list(list_id)
    if not wl:
        return jsonify({"error": "workout list not found"}), 404

    try:
        exercise_ids = [e.id for e in wl.exercises]
        if exercise_ids:
            WorkoutSessionDetail.query.filter(
                WorkoutSessionDetail.exercise_id.in_(exercise_ids)
            ).update({"exercise_id": None}, synchronize_session=False)
        WorkoutSession.query.filter_by(workout_list_id=wl.id).update(
            {"workout_list_id": None}, synchronize_session=False
        )
        db.session.delete(wl)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[workouts/lists] delete {list_id} failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Workout list deleted"}), 200


# ------------------------------
# Sessions
# ------------------------------
@workouts_bp.route("/sessions", methods=["POST"])
@jwt_required()
def start_session():
    data = request.get_json(silent=True) or {}

    list_id = safe_int_or_none(data.get("workout_list_id"))
    if list_id is None:
        return jsonify({"error": "workout_list_id is required"}), 400

    wl = _own_list(list_id)
    if not wl:
        return jsonify({"error": "workout list not found"}), 404

    now = datetime.utcnow()
    try:
        stale = WorkoutSession.query.filter_by(
            user_id=wl.user_id, workout_list_id=wl.id, ended_at=None
        ).all()
        for s in stale:
            _close_session(s, completed=False, now=now)

        session = WorkoutSession(user_id=wl.user_id, workout_list_id=wl.id, started_at=now)
        db.session.add(session)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[workouts/sessions] start failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"session": session.to_summary_dict(), "list": wl.to_dict()}), 201


@workouts_bp.route("/sessions/recent", methods=["GET"])
@jwt_required()
def recent_sessions():
    limit = min(max(1, safe_int(request.args.get("limit"), 10)), RECENT_LIMIT_MAX)
    sessions = (
        WorkoutSession.query.filter_by(user_id=current_user_id())
        .order_by(WorkoutSession.started_at.desc(), WorkoutSession.id.desc())
        .limit(limit)
        .all()
    )
    return jsonify({"sessions": [s.to_summary_dict() for s in sessions]}), 200


@workouts_bp.route("/sessions/<int:session_id>/sets", methods=["POST"])
@jwt_required()
def log_set(session_id: int):
    """
    Body:
    {
      "exercise_id": 12,
      "exercise_index": 0,
      "set_index": 1,
      "reps_completed": 10,
      "weight_used": 40,
      "execution_time": 35,
      "rest_time": 60,
      "start_time": "2024-05-01T10:00:00Z",
      "end_time": "2024-05-01T10:00:35Z"
    }
    """
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "session not found"}), 404
    if session.ended_at is not None:
        return jsonify({"error": "session already finished"}), 409

    data = request.get_json(silent=True) or {}

    exercise_id = safe_int_or_none(data.get("exercise_id"))
    set_index = safe_int_or_none(data.get("set_index"))
    if set_index is None or set_index < 0:
        return jsonify({"error": "set_index is required"}), 400

    exercise = None
    if exercise_id is not None:
        exercise = WorkoutExercise.query.get(exercise_id)
        if not exercise or exercise.workout_list_id != session.workout_list_id:
            return jsonify({"error": "exercise does not belong to this workout"}), 400

    try:
        start_time = parse_datetime(data.get("start_time"))
        end_time = parse_datetime(data.get("end_time"))
    except ValueError:
        return jsonify({"error": "start_time/end_time must be ISO datetimes"}), 400

    execution_time = safe_int_or_none(data.get("execution_time"))
    if execution_time is None and start_time and end_time:
        execution_time = int((end_time - start_time).total_seconds())

    detail = WorkoutSessionDetail.query.filter_by(
        session_id=session.id, exercise_id=exercise_id, set_index=set_index
    ).first()
    created = detail is None
    if created:
        detail = WorkoutSessionDetail(
            session_id=session.id, exercise_id=exercise_id, set_index=set_index
        )
        db.session.add(detail)

    detail.exercise_index = safe_int(
        data.get("exercise_index"), exercise.position if exercise else 0
    )
    detail.reps_completed = max(0, safe_int(data.get("reps_completed"), 0))
    detail.weight_used = safe_float_or_none(data.get("weight_used"))
    detail.execution_time = max(0, execution_time or 0)
    detail.rest_time = max(0, safe_int(data.get("rest_time"), 0))
    detail.start_time = start_time
    detail.end_time = end_time

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[workouts/sets] session {session_id} failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"set": detail.to_dict()}), 201 if created else 200


@workouts_bp.route("/sessions/<int:session_id>/complete", methods=["POST"])
@jwt_required()
def complete_session(session_id: int):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "session not found"}), 404

    data = request.get_json(silent=True) or {}

    if not session.completed:
        _close_session(session, completed=True, now=session.ended_at or datetime.utcnow())
        if data.get("notes"):
            session.notes = str(data.get("notes"))[:500]
        db.session.commit()

    return jsonify({"session": session.to_summary_dict(), "report": _session_report(session)}), 200


@workouts_bp.route("/sessions/<int:session_id>/report", methods=["GET"])
@jwt_required()
def session_report(session_id: int):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "session not found"}), 404
    return jsonify(_session_report(session)), 200
