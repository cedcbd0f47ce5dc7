"""
session.py - Driving session context and output gate.

DriveSession owns the attention debouncer and the vehicle gate for one
process. It must only be driven from a single consumer (see pipeline.py).
OutputGate turns session snapshots into cues for the presentation layer,
emitting only when the externally visible state changes.
"""

from collections import deque, namedtuple
from datetime import datetime

from . import config
from .attention import AttentionDebouncer, FaceDetectionState
from .vehicle import InCarState, VehiclePresenceGate


SessionSnapshot = namedtuple("SessionSnapshot", ["attention", "presence", "counter"])

# attention is None while the device is out of the car (suppressed)
Cue = namedtuple("Cue", ["presence", "attention"])

ATTENTION_BANNERS = {
    FaceDetectionState.SAFE: "Safe to drive",
    FaceDetectionState.UNSAFE: "Unsafe! Eyes on the road",
    FaceDetectionState.NO_FACE: "No face detected",
}

PRESENCE_BANNERS = {
    InCarState.IN_CAR: "In vehicle",
    InCarState.OUT_CAR: "Not in vehicle",
}


class DriveSession:
    """Attention debouncer + vehicle gate, with per-session statistics"""

    def __init__(self, tolerance_policy=None):
        self.debouncer = AttentionDebouncer(tolerance_policy)
        self.vehicle = VehiclePresenceGate()
        # Last observation received while out of the car; never reaches the debouncer
        self.pending_observation = None
        self.events = deque(maxlen=20)

        self.observations_processed = 0
        self.ui_transitions = 0
        self.unsafe_episodes = 0
        self.vehicle_sessions = 0

    @property
    def attention(self):
        return self.debouncer.state

    @property
    def presence(self):
        return self.vehicle.state

    def snapshot(self):
        return SessionSnapshot(self.debouncer.state, self.vehicle.state, self.debouncer.counter)

    def observe(self, raw):
        """Feeds one classified observation and returns the new snapshot"""
        if not self.vehicle.in_car:
            self.pending_observation = raw
            return self.snapshot()

        previous = self.debouncer.state
        current = self.debouncer.observe(raw)
        self.observations_processed += 1

        if current != previous:
            self.ui_transitions += 1
            if current is FaceDetectionState.UNSAFE:
                self.unsafe_episodes += 1
                print(f"[ALERT] UNSAFE! Episode #{self.unsafe_episodes}")
            self._log_event(f"ATTENTION_{previous.name}_TO_{current.name}")

        return self.snapshot()

    def on_vehicle_transition(self, event):
        """Applies a vehicle transition; leaving the car resets the debouncer"""
        previous = self.vehicle.state
        current = self.vehicle.on_transition(event)
        self.pending_observation = None

        if current is InCarState.OUT_CAR:
            self.debouncer.reset()
            if previous is InCarState.IN_CAR:
                print("[INFO] Vehicle exited, attention tracking stopped")
                self._log_event("IN_VEHICLE_EXIT")
        elif previous is InCarState.OUT_CAR:
            self.vehicle_sessions += 1
            print(f"[INFO] Vehicle entered, session #{self.vehicle_sessions}")
            self._log_event("IN_VEHICLE_ENTER")

        return self.snapshot()

    def _log_event(self, event_type):
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.events.appendleft(f"{timestamp} - {event_type}")
        if not config.LOG_EVENTS:
            return
        try:
            with open(config.LOG_FILE, "a") as f:
                f.write(f"[{timestamp}] {event_type}\n")
        except OSError as e:
            print(f"[WARN] Could not write event log: {e}")

    def get_statistics(self):
        return {
            "observations_processed": self.observations_processed,
            "ui_transitions": self.ui_transitions,
            "unsafe_episodes": self.unsafe_episodes,
            "vehicle_sessions": self.vehicle_sessions,
        }


class OutputGate:
    """Suppresses attention while out of the car and deduplicates repeats"""

    def __init__(self):
        self.last_cue = None

    @staticmethod
    def visible(snapshot):
        if snapshot.presence is InCarState.IN_CAR:
            return Cue(snapshot.presence, snapshot.attention)
        return Cue(snapshot.presence, None)

    def update(self, snapshot):
        """Returns a Cue when the visible state changed, otherwise None"""
        cue = self.visible(snapshot)
        if cue == self.last_cue:
            return None
        self.last_cue = cue
        return cue


def banner_text(cue):
    if cue.attention is None:
        return PRESENCE_BANNERS[cue.presence]
    return f"{PRESENCE_BANNERS[cue.presence]} | {ATTENTION_BANNERS[cue.attention]}"
