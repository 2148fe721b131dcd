import pytest

from treino.services.timers import (
    TIMER_COMPLETE,
    TIMER_UPDATE,
    TimerCoordinator,
    TimerRegistry,
    UnknownMessage,
)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(clock):
    return TimerCoordinator(clock=clock)


def _types(messages):
    return [m["type"] for m in messages]


def test_countdown_ticks_and_completes_once(coordinator, clock):
    coordinator.connect("tab")
    coordinator.handle_message({"type": "START_EXERCISE_TIMER", "duration": 2})

    clock.advance(1.0)
    coordinator.advance()
    assert coordinator.snapshot()["timeRemaining"] == pytest.approx(1.0)
    messages = coordinator.drain("tab")
    assert _types(messages) == [TIMER_UPDATE]
    assert messages[0]["data"]["timeRemaining"] == pytest.approx(1.0)

    clock.advance(1.5)
    coordinator.advance()
    messages = coordinator.drain("tab")
    assert messages == [{"type": TIMER_COMPLETE, "timer": "exercise"}]
    assert coordinator.snapshot()["timerActive"] is False

    clock.advance(5)
    coordinator.advance()
    assert coordinator.drain("tab") == []


def test_completion_is_broadcast_to_every_client(coordinator, clock):
    coordinator.connect("phone")
    coordinator.connect("laptop")
    received = []
    coordinator.subscribe(received.append)

    coordinator.start_rest_timer(0.3)
    clock.advance(0.3)
    coordinator.advance()

    expected = {"type": TIMER_COMPLETE, "timer": "rest"}
    assert expected in coordinator.drain("phone")
    assert expected in coordinator.drain("laptop")
    assert expected in received


def test_both_timers_run_independently(coordinator, clock):
    coordinator.start_exercise_timer(10)
    coordinator.start_rest_timer(3)
    clock.advance(4)
    coordinator.advance()
    state = coordinator.snapshot()
    assert state["timerActive"] is True
    assert state["timeRemaining"] == pytest.approx(6.0)
    assert state["restTimerActive"] is False


def test_heartbeat_reconciles_drift(coordinator, clock):
    coordinator.start_exercise_timer(30)
    clock.advance(5)

    # page agrees within tolerance: keep our countdown
    coordinator.heartbeat({"timerActive": True, "timeRemaining": 25.5})
    assert coordinator.snapshot()["timeRemaining"] == pytest.approx(25.0)

    # page drifted more than a second: adopt the page's value
    coordinator.heartbeat({"timerActive": True, "timeRemaining": 20})
    assert coordinator.snapshot()["timeRemaining"] == pytest.approx(20.0)


def test_heartbeat_starts_and_stops_timers(coordinator):
    coordinator.heartbeat({"restTimerActive": True, "restTimeRemaining": 45})
    assert coordinator.snapshot()["restTimerActive"] is True

    coordinator.heartbeat({"restTimerActive": False})
    assert coordinator.snapshot()["restTimerActive"] is False


def test_dead_client_stops_all_timers(coordinator, clock):
    coordinator.start_exercise_timer(600)
    clock.advance(59)
    coordinator.advance()
    assert coordinator.snapshot()["timerActive"] is True

    clock.advance(2)
    coordinator.advance()
    assert coordinator.snapshot()["timerActive"] is False


def test_silent_page_never_sees_completion(coordinator, clock):
    coordinator.connect("tab")
    coordinator.start_exercise_timer(100)

    clock.advance(120)
    coordinator.advance()

    assert TIMER_COMPLETE not in _types(coordinator.drain("tab"))
    state = coordinator.snapshot()
    assert state["timerActive"] is False
    assert state["timeRemaining"] == pytest.approx(0.0)


def test_ticks_stop_at_heartbeat_deadline(coordinator, clock):
    received = []
    coordinator.subscribe(received.append)
    coordinator.start_exercise_timer(100)
    coordinator.start_rest_timer(30)

    clock.advance(75)
    coordinator.advance()
    assert coordinator.any_active is False

    # rest finished before the deadline, exercise did not
    completed = [m["timer"] for m in received if m["type"] == TIMER_COMPLETE]
    assert completed == ["rest"]
    assert received[-1] == {
        "type": TIMER_UPDATE,
        "data": {"timeRemaining": 40.0, "restTimeRemaining": 0.0},
    }


def test_idle_clients_are_dropped(coordinator, clock):
    coordinator.connect("phone")
    coordinator.connect("laptop")

    clock.advance(30)
    coordinator.drain("laptop")
    clock.advance(31)
    coordinator.advance()
    assert coordinator.clients == ["laptop"]

    coordinator.start_exercise_timer(5)
    clock.advance(5.5)
    coordinator.advance()
    assert {"type": TIMER_COMPLETE, "timer": "exercise"} in coordinator.drain("laptop")
    assert coordinator.clients == ["laptop"]


def test_heartbeats_keep_timers_alive(coordinator, clock):
    coordinator.start_exercise_timer(600)
    for _ in range(3):
        clock.advance(50)
        state = coordinator.snapshot()
        coordinator.heartbeat(
            {"timerActive": True, "timeRemaining": state["timeRemaining"] - 50}
        )
    assert coordinator.snapshot()["timerActive"] is True


def test_stop_all_and_unknown_message(coordinator):
    coordinator.start_exercise_timer(10)
    coordinator.handle_message({"type": "STOP_ALL_TIMERS"})
    assert coordinator.any_active is False
    with pytest.raises(UnknownMessage):
        coordinator.handle_message({"type": "DANCE"})


def test_registry_keeps_one_coordinator_per_user(clock):
    registry = TimerRegistry(clock=clock)
    first = registry.get(1)
    assert registry.get(1) is first
    assert registry.get(2) is not first

    first.start_exercise_timer(1)
    clock.advance(1)
    registry.advance_all()
    assert first.any_active is False

    registry.discard(1)
    assert registry.get(1) is not first


def test_ticker_starts_and_stops():
    registry = TimerRegistry()
    registry.start_ticker(interval=0.01)
    thread = registry._thread
    assert thread.is_alive()

    registry.stop_ticker()
    assert not thread.is_alive()
    assert registry._thread is None


# ------------------------------
# HTTP
# ------------------------------
def test_timer_routes(app, client, user, headers, clock):
    app.extensions["timer_registry"] = TimerRegistry(clock=clock)

    resp = client.post(
        "/api/timers/messages",
        json={"client_id": "tab-1", "type": "START_EXERCISE_TIMER", "duration": 1},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["state"]["timerActive"] is True

    clock.advance(1.2)
    resp = client.get("/api/timers/messages?client_id=tab-1", headers=headers)
    body = resp.get_json()
    assert body["state"]["timerActive"] is False
    assert {"type": TIMER_COMPLETE, "timer": "exercise"} in body["messages"]

    resp = client.post("/api/timers/messages", json={"type": "NOPE"}, headers=headers)
    assert resp.status_code == 400
