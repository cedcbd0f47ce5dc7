"""
pipeline.py - Serialized delivery of observations and vehicle events.

Detection may run on any thread; everything it produces goes through
DetectionPipeline, which rate-limits and classifies frames on the producer
side and hands them to a single consumer through a bounded EventChannel.
Only the consumer touches the DriveSession.
"""

import time
import threading
from collections import deque

from . import config
from .attention import classify_safely
from .session import OutputGate

OBSERVATION = "observation"
VEHICLE = "vehicle"


class RateLimiter:
    """Token bucket: `rate` tokens per second, at most `capacity` stored"""

    def __init__(self, rate=None, capacity=1, clock=time.monotonic):
        self.rate = config.OBSERVATIONS_PER_SECOND if rate is None else rate
        if self.rate <= 0:
            raise ValueError(f"Rate must be > 0, got {self.rate}")
        self.capacity = capacity
        self.clock = clock
        self.tokens = float(capacity)
        self.last = None

    def try_acquire(self, now=None):
        if now is None:
            now = self.clock()
        if self.last is not None:
            self.tokens = min(self.capacity, self.tokens + (now - self.last) * self.rate)
        self.last = now

        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class EventChannel:
    """
    Bounded single-consumer queue.

    When `capacity` observations are already waiting, the oldest one is
    dropped to make room. Vehicle events are never dropped.
    """

    def __init__(self, capacity=None):
        self.capacity = config.CHANNEL_CAPACITY if capacity is None else capacity
        if self.capacity < 1:
            raise ValueError(f"Channel capacity must be >= 1, got {self.capacity}")
        self._items = deque()
        self._observations = 0
        self._closed = False
        self._cond = threading.Condition()
        self.dropped = 0

    def __len__(self):
        with self._cond:
            return len(self._items)

    @property
    def closed(self):
        return self._closed

    def put_observation(self, raw):
        with self._cond:
            if self._closed:
                return False
            if self._observations >= self.capacity:
                self._drop_oldest_observation()
            self._items.append((OBSERVATION, raw))
            self._observations += 1
            self._cond.notify()
            return True

    def put_vehicle_event(self, event):
        with self._cond:
            if self._closed:
                return False
            self._items.append((VEHICLE, event))
            self._cond.notify()
            return True

    def _drop_oldest_observation(self):
        for i, (kind, _) in enumerate(self._items):
            if kind == OBSERVATION:
                del self._items[i]
                self._observations -= 1
                self.dropped += 1
                return

    def get(self, timeout=None):
        """Returns the next (kind, value) item, or None on timeout/close"""
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._closed, timeout)
            return self._pop()

    def get_nowait(self):
        with self._cond:
            return self._pop()

    def _pop(self):
        if not self._items:
            return None
        kind, value = self._items.popleft()
        if kind == OBSERVATION:
            self._observations -= 1
        return kind, value

    def close(self):
        with self._cond:
            self._closed = True
            self._items.clear()
            self._observations = 0
            self._cond.notify_all()


class DetectionPipeline:
    """Producer-side gating plus a single consumer driving the session"""

    def __init__(self, session, on_output=None, rate_limiter=None, channel=None,
                 output_gate=None, unsafe_below=None, safe_above=None):
        self.session = session
        self.on_output = on_output
        self.rate_limiter = rate_limiter or RateLimiter()
        self.channel = channel or EventChannel()
        self.output_gate = output_gate or OutputGate()
        self.unsafe_below = unsafe_below
        self.safe_above = safe_above

        self._shutdown = threading.Event()
        self._thread = None

        # Producer-side counters
        self.frames_skipped = 0
        self.observations_dropped = 0

    @property
    def is_shutdown(self):
        return self._shutdown.is_set()

    # ---------------- producer side ----------------

    def submit_face(self, left_eye_open, right_eye_open, now=None):
        """
        Offers one detection result. Returns True when an observation was
        queued, False when it was rate-limited, ambiguous, malformed or
        arrived after shutdown.
        """
        if self.is_shutdown:
            return False
        if not self.rate_limiter.try_acquire(now):
            self.frames_skipped += 1
            return False

        raw = classify_safely(left_eye_open, right_eye_open, self.unsafe_below, self.safe_above)
        if raw is None:
            self.observations_dropped += 1
            return False
        return self.channel.put_observation(raw)

    def submit_no_face(self, now=None):
        return self.submit_face(None, None, now)

    def submit_vehicle(self, event):
        if self.is_shutdown:
            return False
        return self.channel.put_vehicle_event(event)

    # ---------------- consumer side ----------------

    def _dispatch(self, item):
        kind, value = item
        if kind == OBSERVATION:
            snapshot = self.session.observe(value)
        else:
            snapshot = self.session.on_vehicle_transition(value)

        cue = self.output_gate.update(snapshot)
        if cue is not None and self.on_output is not None:
            try:
                self.on_output(cue)
            except Exception as e:
                print(f"[ERROR] Output handler failed: {e}")
        return cue

    def drain(self):
        """Processes everything queued on the calling thread; returns emitted cues"""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("drain() cannot run while the consumer thread is active")
        cues = []
        while True:
            item = self.channel.get_nowait()
            if item is None:
                return cues
            cue = self._dispatch(item)
            if cue is not None:
                cues.append(cue)

    def _run(self):
        while not self.is_shutdown:
            item = self.channel.get(timeout=config.CONSUMER_POLL_TIMEOUT)
            if item is None or self.is_shutdown:
                continue
            self._dispatch(item)

    def start(self):
        if self.is_shutdown:
            raise RuntimeError("Pipeline already shut down")
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="safedrive-consumer", daemon=True)
        self._thread.start()
        print("[INFO] Detection pipeline started")

    def stop(self, timeout=2.0):
        self._shutdown.set()
        self.channel.close()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        print("[INFO] Detection pipeline stopped")

    def get_statistics(self):
        stats = self.session.get_statistics()
        stats.update({
            "frames_skipped": self.frames_skipped,
            "observations_dropped": self.observations_dropped,
            "channel_overflow": self.channel.dropped,
        })
        return stats
