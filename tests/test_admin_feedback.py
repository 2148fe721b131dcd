from treino import db
from treino.models.assessment import AISuggestedWorkout, Assessment
from treino.models.feedback import UserFeedback
from treino.models.user import User


def test_feedback_anonymous_and_authenticated(client, user, headers):
    resp = client.post("/api/feedback", json={"message": "App travou no timer", "feedback_type": "bug"})
    assert resp.status_code == 201
    assert resp.get_json()["feedback"]["user_id"] is None

    resp = client.post("/api/feedback", json={"message": "Adorei"}, headers=headers)
    body = resp.get_json()["feedback"]
    assert body["user_id"] == user.id
    assert body["email"] == user.email
    assert body["feedback_type"] == "suggestion"

    assert client.post("/api/feedback", json={"message": " "}).status_code == 400
    assert client.post("/api/feedback", json={"message": "x", "feedback_type": "rant"}).status_code == 400


def test_admin_routes_require_admin(client, headers):
    for path in ("/api/admin/users", "/api/admin/feedback", "/api/admin/settings"):
        assert client.get(path, headers=headers).status_code == 403
    assert client.get("/api/admin/users").status_code == 401


def test_admin_user_management(client, user, admin, auth_headers):
    admin_headers = auth_headers(admin)

    body = client.get("/api/admin/users?q=ana", headers=admin_headers).get_json()
    assert body["total"] == 1
    assert body["users"][0]["email"] == user.email
    assert body["users"][0]["access"]["has_access"] is True

    resp = client.put(f"/api/admin/users/{user.id}/plan", json={"plan_type": "gold"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.put(
        f"/api/admin/users/{user.id}/plan",
        json={"plan_type": "paid", "expiry_date": "2030-01-01T00:00:00Z"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["user"]["plan_type"] == "paid"
    assert resp.get_json()["user"]["expiry_date"] == "2030-01-01T00:00:00"

    profile = client.get(f"/api/admin/profiles/{user.id}", headers=admin_headers).get_json()
    assert profile["exists"] is True
    assert profile["profile"]["stripe_customer_id"] is None
    assert client.get("/api/admin/profiles/9999", headers=admin_headers).status_code == 404


def test_admin_feedback_and_settings(client, user, admin, auth_headers):
    admin_headers = auth_headers(admin)
    db.session.add(UserFeedback(user_id=user.id, message="Sugestão", feedback_type="suggestion"))
    db.session.commit()

    rows = client.get("/api/admin/feedback?status=pending", headers=admin_headers).get_json()["feedback"]
    assert len(rows) == 1
    resp = client.put(f"/api/admin/feedback/{rows[0]['id']}", json={"status": "resolved"}, headers=admin_headers)
    assert resp.get_json()["feedback"]["status"] == "resolved"
    assert client.put(
        f"/api/admin/feedback/{rows[0]['id']}", json={"status": "lost"}, headers=admin_headers
    ).status_code == 400

    assert client.get("/api/admin/settings", headers=admin_headers).get_json() == {"free_trial_days": 14}
    assert client.put("/api/admin/settings", json={"free_trial_days": -1}, headers=admin_headers).status_code == 400
    client.put("/api/admin/settings", json={"free_trial_days": 7}, headers=admin_headers)
    client.put("/api/admin/settings", json={"free_trial_days": 21}, headers=admin_headers)
    assert client.get("/api/admin/settings", headers=admin_headers).get_json() == {"free_trial_days": 21}


def test_admin_suggestion_ratings(client, user, admin, auth_headers):
    assessment = Assessment(user_id=user.id, experience_level="beginner", fitness_goal="Hipertrofia")
    db.session.add(assessment)
    db.session.flush()
    for score in (5, 4, None):
        db.session.add(
            AISuggestedWorkout(
                assessment_id=assessment.id, user_id=user.id, workout_name="Treino", exercises=[],
                user_feedback=score,
            )
        )
    db.session.commit()

    body = client.get("/api/admin/suggestions/feedback", headers=auth_headers(admin)).get_json()
    assert body["count"] == 2
    assert body["average_score"] == 4.5


def test_promote_admin_cli(app, user):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["promote-admin", user.email])
    assert result.exit_code == 0
    db.session.expire_all()
    assert User.query.get(user.id).plan_type == "admin"

    result = runner.invoke(args=["promote-admin", "ghost@example.com"])
    assert result.exit_code != 0
