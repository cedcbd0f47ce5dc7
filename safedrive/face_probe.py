"""
face_probe.py - MediaPipe eye-openness probe.
Turns a camera frame into (left, right) eye-open probabilities for the
detection pipeline. Works with both the MediaPipe tasks API (FaceLandmarker)
and the older solutions API (FaceMesh), whichever the installed release has.
"""

import os
import urllib.request

import cv2
import numpy as np
from scipy.spatial import distance

# Keep MediaPipe's native logging off the console
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", '3')
os.environ.setdefault("GLOG_minloglevel", '3')

from . import config

# Face mesh indices per eye, ordered corner, top, top, corner, bottom, bottom
LEFT_EYE = [362, 385, 387, 263, 373, 380]
RIGHT_EYE = [33, 160, 158, 133, 153, 144]

# (top, bottom) pairs within an eye's index list
_LID_PAIRS = ((1, 5), (2, 4))


def eye_aspect_ratio(landmarks, indices):
    """Mean lid opening divided by eye width; 0.0 for a degenerate eye"""
    eye = np.asarray(landmarks, dtype=float)[indices]
    width = distance.euclidean(eye[0], eye[3])
    if width == 0:
        return 0.0
    opening = np.mean([distance.euclidean(eye[top], eye[bottom]) for top, bottom in _LID_PAIRS])
    return float(opening / width)


def ear_to_probability(ear, ear_closed=None, ear_open=None):
    """Linear map of EAR onto [0, 1]: EAR_CLOSED -> 0.0, EAR_OPEN -> 1.0"""
    ear_closed = config.EAR_CLOSED if ear_closed is None else ear_closed
    ear_open = config.EAR_OPEN if ear_open is None else ear_open
    if ear_open <= ear_closed:
        raise ValueError(f"EAR_OPEN ({ear_open}) must be greater than EAR_CLOSED ({ear_closed})")
    return float(np.clip((ear - ear_closed) / (ear_open - ear_closed), 0.0, 1.0))


def eye_open_probabilities(landmarks):
    """(left, right) eye-open probabilities for one face's pixel landmarks"""
    left = ear_to_probability(eye_aspect_ratio(landmarks, LEFT_EYE))
    right = ear_to_probability(eye_aspect_ratio(landmarks, RIGHT_EYE))
    return left, right


def ensure_face_model(path=None, url=None):
    """Returns the FaceLandmarker model path, downloading it on first use"""
    path = path or config.FACE_MODEL_PATH
    if not os.path.exists(path):
        url = url or config.FACE_MODEL_URL
        print(f"[INFO] Downloading face model to {path}...")
        urllib.request.urlretrieve(url, path)
    return path


class EyeOpennessProbe:
    """Eye-open probabilities from the first face MediaPipe finds"""

    def __init__(self):
        import mediapipe as mp

        self.mp = mp
        self.use_tasks_api = not hasattr(mp, 'solutions')
        print(f"[INFO] Loading MediaPipe ({'tasks' if self.use_tasks_api else 'solutions'} API)...")
        self.detector = self._create_tasks_detector() if self.use_tasks_api else self._create_face_mesh()
        print("[INFO] Eye-openness probe ready!")

    def _create_tasks_detector(self):
        from mediapipe.tasks import python as mp_python
        from mediapipe.tasks.python import vision

        options = vision.FaceLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=ensure_face_model()),
            running_mode=vision.RunningMode.IMAGE,
            num_faces=1,
            min_face_detection_confidence=config.MIN_DETECTION_CONFIDENCE,
            min_tracking_confidence=config.MIN_TRACKING_CONFIDENCE,
        )
        return vision.FaceLandmarker.create_from_options(options)

    def _create_face_mesh(self):
        return self.mp.solutions.face_mesh.FaceMesh(
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=config.MIN_DETECTION_CONFIDENCE,
            min_tracking_confidence=config.MIN_TRACKING_CONFIDENCE,
        )

    def _first_face(self, rgb_frame):
        if self.use_tasks_api:
            image = self.mp.Image(image_format=self.mp.ImageFormat.SRGB, data=rgb_frame)
            faces = self.detector.detect(image).face_landmarks
            return faces[0] if faces else None
        faces = self.detector.process(rgb_frame).multi_face_landmarks
        return faces[0].landmark if faces else None

    def landmarks(self, frame):
        """Pixel landmarks of the first face as an (N, 2) array, or None"""
        points = self._first_face(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if points is None:
            return None
        h, w = frame.shape[:2]
        return np.array([(int(p.x * w), int(p.y * h)) for p in points])

    def measure(self, frame):
        """
        Returns (left, right, landmarks). Both probabilities are None when
        no face was found.
        """
        landmarks_np = self.landmarks(frame)
        if landmarks_np is None:
            return None, None, None
        left, right = eye_open_probabilities(landmarks_np)
        return left, right, landmarks_np

    def draw(self, frame, landmarks_np, color=(0, 255, 0)):
        for idx in LEFT_EYE + RIGHT_EYE:
            cv2.circle(frame, tuple(int(v) for v in landmarks_np[idx]), 1, color, -1)

    def close(self):
        self.detector.close()
