"""
attention.py - Eye classification and attention debouncing.

A detector delivers, once per considered frame, the left/right eye-open
probabilities of the first face (or nothing when no face was found).
``classify_eyes`` turns them into a raw state and ``AttentionDebouncer``
promotes raw states into the UI state only after the tolerance policy of
the current UI state is exhausted.
"""

import math
import numbers
from enum import Enum

from . import config


class ValidationError(ValueError):
    """Raised for eye-open probabilities that are not numbers in [0, 1]"""


class FaceDetectionState(Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"
    NO_FACE = "no_face"


def default_tolerance_policy():
    """Tolerance per current UI state, as configured in config.py"""
    return {
        FaceDetectionState.SAFE: config.SAFE_TOLERANCE,
        FaceDetectionState.UNSAFE: config.UNSAFE_TOLERANCE,
        FaceDetectionState.NO_FACE: config.NO_FACE_TOLERANCE,
    }


def _check_probability(name, value):
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{name} eye-open probability must be a number, got {value!r}")
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} eye-open probability out of [0, 1]: {value!r}")


def classify_eyes(left_eye_open, right_eye_open, unsafe_below=None, safe_above=None):
    """
    Maps a pair of eye-open probabilities to a raw FaceDetectionState.

    Returns None for the ambiguous band between the two thresholds, in
    which case the observation must be dropped. A missing probability on
    either side means NO_FACE.
    """
    if unsafe_below is None:
        unsafe_below = config.UNSAFE_BELOW
    if safe_above is None:
        safe_above = config.SAFE_ABOVE

    if left_eye_open is None or right_eye_open is None:
        return FaceDetectionState.NO_FACE

    _check_probability("left", left_eye_open)
    _check_probability("right", right_eye_open)

    if left_eye_open < unsafe_below and right_eye_open < unsafe_below:
        return FaceDetectionState.UNSAFE
    if left_eye_open > safe_above and right_eye_open > safe_above:
        return FaceDetectionState.SAFE
    return None


def classify_safely(left_eye_open, right_eye_open, unsafe_below=None, safe_above=None):
    """Same as classify_eyes, but malformed input is dropped (None) instead of raised"""
    try:
        return classify_eyes(left_eye_open, right_eye_open, unsafe_below, safe_above)
    except ValidationError as e:
        print(f"[WARN] Dropping observation: {e}")
        return None


class AttentionDebouncer:
    """Hysteresis between raw per-frame states and the UI state"""

    INITIAL_STATE = FaceDetectionState.NO_FACE

    def __init__(self, tolerance_policy=None):
        policy = dict(tolerance_policy or default_tolerance_policy())
        for state in FaceDetectionState:
            if state not in policy:
                raise ValueError(f"Tolerance policy is missing {state.name}")
            if policy[state] < 0:
                raise ValueError(f"Tolerance for {state.name} must be >= 0, got {policy[state]}")
        self.tolerance_policy = policy
        self.state = self.INITIAL_STATE
        self.counter = 0

    def observe(self, raw):
        """Feeds one raw state and returns the (possibly new) UI state"""
        if raw == self.state:
            self.counter = 0
            return self.state

        # The disagreement is tolerated as noise until the outgoing state's budget is used
        if self.counter < self.tolerance_policy[self.state]:
            self.counter += 1
            return self.state

        self.counter = 0
        self.state = raw
        return self.state

    def reset(self):
        self.state = self.INITIAL_STATE
        self.counter = 0
