# treino/routes/measurement_routes.py
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from .. import db
from ..models.measurement import METRICS, BodyMeasurement
from ..utils import current_user_id, parse_datetime, safe_float_or_none

measurements_bp = Blueprint("measurements", __name__)


@measurements_bp.route("", methods=["GET"])
@jwt_required()
def list_measurements():
    rows = (
        BodyMeasurement.query.filter_by(user_id=current_user_id())
        .order_by(BodyMeasurement.measurement_date.desc(), BodyMeasurement.id.desc())
        .all()
    )
    return jsonify({"measurements": [m.to_dict() for m in rows]}), 200


@measurements_bp.route("", methods=["POST"])
@jwt_required()
def add_measurement():
    data = request.get_json(silent=True) or {}

    values = {metric: safe_float_or_none(data.get(metric)) for metric in METRICS}
    if all(v is None for v in values.values()):
        return jsonify({"error": "at least one measurement is required"}), 400
    if any(v is not None and v < 0 for v in values.values()):
        return jsonify({"error": "measurements cannot be negative"}), 400

    try:
        measured_at = parse_datetime(data.get("measurement_date")) or datetime.utcnow()
    except ValueError:
        return jsonify({"error": "measurement_date must be an ISO date"}), 400

    row = BodyMeasurement(
        user_id=current_user_id(),
        measurement_date=measured_at,
        notes=(data.get("notes") or None),
        **values,
    )

    try:
        db.session.add(row)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"[measurements] insert failed: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"measurement": row.to_dict()}), 201


@measurements_bp.route("/<int:measurement_id>", methods=["DELETE"])
@jwt_required()
def delete_measurement(measurement_id: int):
    row = BodyMeasurement.query.filter_by(
        id=measurement_id, user_id=current_user_id()
    ).first()
    if not row:
        return jsonify({"error": "measurement not found"}), 404

    db.session.delete(row)
    db.session.commit()
    return jsonify({"message": "Measurement deleted"}), 200


@measurements_bp.route("/progress", methods=["GET"])
@jwt_required()
def progress():
    """
    Query: ?metric=weight

    Returns the metric's history oldest first plus first/latest/change.
    """
    metric = (request.args.get("metric") or "weight").strip()
    if metric not in METRICS:
        return jsonify({"error": f"unknown metric '{metric}'", "metrics": list(METRICS)}), 400

    column = getattr(BodyMeasurement, metric)
    rows = (
        BodyMeasurement.query.filter(
            BodyMeasurement.user_id == current_user_id(), column.isnot(None)
        )
        .order_by(BodyMeasurement.measurement_date.asc(), BodyMeasurement.id.asc())
        .all()
    )

    series = [
        {"date": r.measurement_date.isoformat(), "value": float(getattr(r, metric))}
        for r in rows
    ]
    first = series[0]["value"] if series else None
    latest = series[-1]["value"] if series else None

    return jsonify({
        "metric": metric,
        "series": series,
        "first": first,
        "latest": latest,
        "change": round(latest - first, 2) if series else None,
    }), 200
