def test_measurement_progress(client, headers):
    for date, weight, waist in (
        ("2024-03-01", 82.0, 90),
        ("2024-01-01", 85.5, None),
        ("2024-02-01", 84.0, 92),
    ):
        resp = client.post(
            "/api/measurements",
            json={"measurement_date": date, "weight": weight, "waist": waist},
            headers=headers,
        )
        assert resp.status_code == 201

    body = client.get("/api/measurements/progress?metric=weight", headers=headers).get_json()
    assert [p["value"] for p in body["series"]] == [85.5, 84.0, 82.0]
    assert body["first"] == 85.5
    assert body["latest"] == 82.0
    assert body["change"] == -3.5

    waist = client.get("/api/measurements/progress?metric=waist", headers=headers).get_json()
    assert len(waist["series"]) == 2

    resp = client.get("/api/measurements/progress?metric=shoe_size", headers=headers)
    assert resp.status_code == 400


def test_measurement_validation_and_delete(client, headers):
    assert client.post("/api/measurements", json={"notes": "x"}, headers=headers).status_code == 400
    assert client.post("/api/measurements", json={"weight": -1}, headers=headers).status_code == 400

    created = client.post("/api/measurements", json={"weight": 80}, headers=headers).get_json()
    measurement_id = created["measurement"]["id"]
    assert client.delete(f"/api/measurements/{measurement_id}", headers=headers).status_code == 200
    assert client.get("/api/measurements", headers=headers).get_json()["measurements"] == []


def test_goal_is_marked_achieved(client, headers):
    resp = client.post(
        "/api/goals",
        json={"goal_type": "weight", "goal_value": 75, "current_value": 82, "deadline": "2024-12-31"},
        headers=headers,
    )
    assert resp.status_code == 201
    goal = resp.get_json()["goal"]
    assert goal["achieved"] is False
    assert goal["deadline"] == "2024-12-31"

    resp = client.put(f"/api/goals/{goal['id']}", json={"current_value": 74.8}, headers=headers)
    assert resp.get_json()["goal"]["achieved"] is True
    assert resp.get_json()["goal"]["achieved_at"] is not None


def test_increasing_goal(client, headers):
    goal = client.post(
        "/api/goals", json={"goal_type": "workouts_per_month", "goal_value": 12}, headers=headers
    ).get_json()["goal"]
    resp = client.put(f"/api/goals/{goal['id']}", json={"current_value": 8}, headers=headers)
    assert resp.get_json()["goal"]["achieved"] is False
    resp = client.put(f"/api/goals/{goal['id']}", json={"current_value": 12}, headers=headers)
    assert resp.get_json()["goal"]["achieved"] is True

    assert client.delete(f"/api/goals/{goal['id']}", headers=headers).status_code == 200
    assert client.get("/api/goals", headers=headers).get_json()["goals"] == []
