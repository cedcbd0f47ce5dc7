# config.py - SafeDrive configuration
# Shared by the session core, the detection pipeline and the camera runner

import os
import json
from datetime import datetime

# ===================== EYE CLASSIFICATION =====================
# Eye-open probabilities in [0, 1]; values between the two bounds are dropped
UNSAFE_BELOW = 0.1     # Both eyes below this -> UNSAFE (eyes closed)
SAFE_ABOVE = 0.4       # Both eyes above this -> SAFE (eyes open)

# ===================== DEBOUNCE =====================
# Extra disagreeing observations tolerated before leaving the current UI state
SAFE_TOLERANCE = 1
UNSAFE_TOLERANCE = 0
NO_FACE_TOLERANCE = 0

# ===================== PIPELINE =====================
OBSERVATIONS_PER_SECOND = 1.0   # At most one observation considered per second
CHANNEL_CAPACITY = 8            # Pending observations kept (oldest dropped first)
CONSUMER_POLL_TIMEOUT = 0.2     # Seconds the consumer waits before re-checking shutdown

# ===================== EYE OPENNESS (MediaPipe) =====================
# EAR is mapped linearly onto an eye-open probability
EAR_CLOSED = 0.15      # EAR at (or below) which the eye counts as fully closed
EAR_OPEN = 0.30        # EAR at (or above) which the eye counts as fully open
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5
FACE_MODEL_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "face_landmarker.task")
FACE_MODEL_URL = ("https://storage.googleapis.com/mediapipe-models/face_landmarker/"
                  "face_landmarker/float16/1/face_landmarker.task")

# ===================== CAMERA =====================
CAMERA_INDEX = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480
CAMERA_FPS = 15

# ===================== AUDIO =====================
AUDIO_ENABLED = True
SOUND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sounds")
SAFE_SOUND_PATH = os.path.join(SOUND_DIR, "upward.wav")
UNSAFE_SOUND_PATH = os.path.join(SOUND_DIR, "downward.wav")
NO_FACE_SOUND_PATH = os.path.join(SOUND_DIR, "error.wav")

# ===================== VIEW =====================
DISPLAY_ENABLED = True      # False when running over SSH without X11
SHOW_PROBABILITIES = True   # Draw eye-open probabilities on the preview

# ===================== LOGGING =====================
LOG_EVENTS = False
LOG_FILE = "safedrive_log.txt"

# ===================== CALIBRATION FILE =====================
THRESHOLDS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "eye_thresholds.json")


def validate_eye_thresholds(unsafe_below, safe_above):
    """Raises ValueError unless 0 <= unsafe_below < safe_above <= 1"""
    if not 0.0 <= unsafe_below < safe_above <= 1.0:
        raise ValueError(
            f"Invalid eye thresholds: need 0 <= unsafe_below < safe_above <= 1, "
            f"got unsafe_below={unsafe_below}, safe_above={safe_above}")
    return unsafe_below, safe_above


def load_eye_thresholds(path=None):
    """Loads the probability band from JSON or uses the defaults above"""
    path = path or THRESHOLDS_PATH
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                data = json.load(f)
            unsafe_below = float(data['unsafe_below'])
            safe_above = float(data['safe_above'])
        except (OSError, KeyError, TypeError, ValueError) as e:
            print(f"[WARN] Error loading eye thresholds from {path}: {e}")
        else:
            print(f"[INFO] Loaded custom eye thresholds: {unsafe_below:.2f} / {safe_above:.2f}")
            return validate_eye_thresholds(unsafe_below, safe_above)
    return UNSAFE_BELOW, SAFE_ABOVE


def save_eye_thresholds(unsafe_below, safe_above, path=None):
    """Saves the probability band to JSON"""
    validate_eye_thresholds(unsafe_below, safe_above)
    path = path or THRESHOLDS_PATH
    with open(path, 'w') as f:
        json.dump({
            "unsafe_below": unsafe_below,
            "safe_above": safe_above,
            "date": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        }, f)
    print(f"[INFO] Eye thresholds saved to {path}")
    return path
