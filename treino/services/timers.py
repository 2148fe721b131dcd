"""
Workout timer coordination.

A page running a workout keeps an exercise countdown and a rest countdown.
The page can be backgrounded (tab hidden, phone locked), so the authoritative
countdown lives here, one coordinator per user, and the page reconciles with
it through periodic heartbeats:

- the page sends HEARTBEAT with the timer state it believes in; a timer the
  page reports active is (re)started when it is inactive here or has drifted
  more than DRIFT_TOLERANCE seconds, and stopped when the page reports it
  inactive;
- timers tick every TICK_SECONDS; reaching zero emits one TIMER_COMPLETE to
  every connected client, any other advance emits a TIMER_UPDATE;
- no heartbeat for HEARTBEAT_TIMEOUT seconds means the page is gone and all
  timers are force-stopped as of that deadline, never completing after it;
- a client id that has not polled for HEARTBEAT_TIMEOUT seconds loses its
  outbox.

Time advances lazily from an injectable clock whenever the coordinator is
touched; `TimerRegistry.start_ticker()` adds a daemon thread that advances
every coordinator on the tick cadence so completions are emitted promptly.
"""
import logging
import threading
import time
from collections import deque

logger = logging.getLogger(__name__)

TICK_SECONDS = 0.1
DRIFT_TOLERANCE = 1.0
HEARTBEAT_TIMEOUT = 60.0
OUTBOX_SIZE = 100

HEARTBEAT = "HEARTBEAT"
START_EXERCISE_TIMER = "START_EXERCISE_TIMER"
START_REST_TIMER = "START_REST_TIMER"
STOP_ALL_TIMERS = "STOP_ALL_TIMERS"
TIMER_UPDATE = "TIMER_UPDATE"
TIMER_COMPLETE = "TIMER_COMPLETE"

INBOUND_TYPES = (HEARTBEAT, START_EXERCISE_TIMER, START_REST_TIMER, STOP_ALL_TIMERS)


class UnknownMessage(ValueError):
    pass


class Countdown:
    __slots__ = ("name", "remaining", "active")

    def __init__(self, name):
        self.name = name
        self.remaining = 0.0
        self.active = False

    def start(self, duration):
        self.remaining = max(0.0, float(duration))
        self.active = self.remaining > 0

    def stop(self):
        self.remaining = 0.0
        self.active = False

    def tick(self):
        """Advance one tick. Returns True when this tick finished the countdown."""
        if not self.active:
            return False
        self.remaining -= TICK_SECONDS
        # float steps of 0.1 drift; treat anything below half a tick as zero
        if self.remaining <= TICK_SECONDS / 2:
            self.stop()
            return True
        return False


class TimerCoordinator:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.RLock()
        self.exercise = Countdown("exercise")
        self.rest = Countdown("rest")
        now = clock()
        self.last_heartbeat = now
        self._last_tick = now
        self._outboxes = {}
        self._last_seen = {}
        self._listeners = []

    # ------------------------------
    # Clients
    # ------------------------------
    def connect(self, client_id):
        with self._lock:
            box = self._outboxes.get(client_id)
            if box is None:
                box = deque(maxlen=OUTBOX_SIZE)
                self._outboxes[client_id] = box
            self._last_seen[client_id] = self._clock()
            return box

    def disconnect(self, client_id):
        with self._lock:
            self._outboxes.pop(client_id, None)
            self._last_seen.pop(client_id, None)

    @property
    def clients(self):
        with self._lock:
            return sorted(self._outboxes)

    def _prune_clients(self, now):
        """Drop outboxes nobody has polled for HEARTBEAT_TIMEOUT seconds."""
        for client_id, seen in list(self._last_seen.items()):
            if now - seen > HEARTBEAT_TIMEOUT:
                logger.info("dropping idle timer client %s", client_id)
                self.disconnect(client_id)

    def subscribe(self, listener):
        """Register a callable receiving every emitted message."""
        with self._lock:
            self._listeners.append(listener)

    def drain(self, client_id):
        with self._lock:
            box = self.connect(client_id)
            messages = list(box)
            box.clear()
            return messages

    def _emit(self, message):
        for box in self._outboxes.values():
            box.append(message)
        for listener in list(self._listeners):
            listener(message)

    # ------------------------------
    # Clock
    # ------------------------------
    def advance(self):
        """
        Apply every tick elapsed since the last advance.

        Ticks never run past the heartbeat deadline: when the page has been
        silent for HEARTBEAT_TIMEOUT seconds the timers are stopped at that
        instant, so nothing completes after the page is gone.
        """
        with self._lock:
            now = self._clock()
            deadline = self.last_heartbeat + HEARTBEAT_TIMEOUT
            expired = now > deadline and self.any_active

            until = min(now, deadline) if expired else now
            ticks = int((until - self._last_tick) / TICK_SECONDS + 1e-9)
            if ticks > 0:
                self._last_tick += ticks * TICK_SECONDS
                self._run_ticks(ticks)

            if expired:
                if self.any_active:
                    logger.info("no heartbeat for %.0fs, stopping timers", now - self.last_heartbeat)
                    self.stop_all()
                self._last_tick = now

            self._prune_clients(now)

    def _run_ticks(self, ticks):
        was_active = self.any_active
        for _ in range(ticks):
            if not self.any_active:
                break
            for countdown in (self.exercise, self.rest):
                if countdown.tick():
                    self._emit({"type": TIMER_COMPLETE, "timer": countdown.name})
        if was_active and self.any_active:
            self._emit({"type": TIMER_UPDATE, "data": self._remaining()})

    @property
    def any_active(self):
        return self.exercise.active or self.rest.active

    # ------------------------------
    # Operations
    # ------------------------------
    def start_exercise_timer(self, duration):
        with self._lock:
            self.advance()
            self.last_heartbeat = self._clock()
            self.exercise.start(duration)

    def start_rest_timer(self, duration):
        with self._lock:
            self.advance()
            self.last_heartbeat = self._clock()
            self.rest.start(duration)

    def stop_all(self):
        with self._lock:
            self.exercise.stop()
            self.rest.stop()

    def heartbeat(self, state):
        with self._lock:
            self.advance()
            self.last_heartbeat = self._clock()
            self._reconcile(
                self.exercise,
                bool(state.get("timerActive")),
                _as_float(state.get("timeRemaining")),
            )
            self._reconcile(
                self.rest,
                bool(state.get("restTimerActive")),
                _as_float(state.get("restTimeRemaining")),
            )

    @staticmethod
    def _reconcile(countdown, page_active, page_remaining):
        if page_active and page_remaining > 0:
            if not countdown.active or abs(countdown.remaining - page_remaining) > DRIFT_TOLERANCE:
                countdown.start(page_remaining)
        elif not page_active and countdown.active:
            countdown.stop()

    def handle_message(self, message):
        message = message or {}
        kind = message.get("type")
        if kind == HEARTBEAT:
            self.heartbeat(message.get("data") or {})
        elif kind == START_EXERCISE_TIMER:
            self.start_exercise_timer(_as_float(message.get("duration")))
        elif kind == START_REST_TIMER:
            self.start_rest_timer(_as_float(message.get("duration")))
        elif kind == STOP_ALL_TIMERS:
            self.stop_all()
        else:
            raise UnknownMessage(f"unknown timer message type: {kind!r}")

    def _remaining(self):
        return {
            "timeRemaining": round(self.exercise.remaining, 1),
            "restTimeRemaining": round(self.rest.remaining, 1),
        }

    def snapshot(self):
        with self._lock:
            data = self._remaining()
            data["timerActive"] = self.exercise.active
            data["restTimerActive"] = self.rest.active
            return data


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class TimerRegistry:
    """In-memory coordinators keyed by user id."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._coordinators = {}
        self._stop = threading.Event()
        self._thread = None

    def get(self, user_id):
        with self._lock:
            coordinator = self._coordinators.get(user_id)
            if coordinator is None:
                coordinator = TimerCoordinator(clock=self._clock)
                self._coordinators[user_id] = coordinator
            return coordinator

    def discard(self, user_id):
        with self._lock:
            self._coordinators.pop(user_id, None)

    def advance_all(self):
        with self._lock:
            coordinators = list(self._coordinators.values())
        for coordinator in coordinators:
            coordinator.advance()

    def start_ticker(self, interval=TICK_SECONDS):
        if self._thread is not None:
            return
        self._stop.clear()

        def _run():
            while not self._stop.wait(interval):
                try:
                    self.advance_all()
                except Exception:
                    logger.exception("timer ticker failed")

        self._thread = threading.Thread(target=_run, name="workout-timer-ticker", daemon=True)
        self._thread.start()

    def stop_ticker(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
            self._thread = None
