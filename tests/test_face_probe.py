import numpy as np
import pytest

from safedrive.face_probe import (
    LEFT_EYE,
    RIGHT_EYE,
    ear_to_probability,
    ensure_face_model,
    eye_aspect_ratio,
    eye_open_probabilities,
)


def face_landmarks(left_opening, right_opening):
    """Synthetic 478-point face whose eyes have the given vertical half-opening"""
    landmarks = np.zeros((478, 2))
    for indices, opening, x0 in ((LEFT_EYE, left_opening, 100), (RIGHT_EYE, right_opening, 0)):
        p1, p2, p3, p4, p5, p6 = indices
        landmarks[p1] = (x0, 50)
        landmarks[p4] = (x0 + 10, 50)
        landmarks[p2] = (x0 + 3, 50 - opening)
        landmarks[p6] = (x0 + 3, 50 + opening)
        landmarks[p3] = (x0 + 7, 50 - opening)
        landmarks[p5] = (x0 + 7, 50 + opening)
    return landmarks


def test_eye_aspect_ratio():
    landmarks = face_landmarks(1.5, 0.5)
    assert eye_aspect_ratio(landmarks, LEFT_EYE) == pytest.approx(0.3)
    assert eye_aspect_ratio(landmarks, RIGHT_EYE) == pytest.approx(0.1)


def test_degenerate_eye_has_zero_ear():
    assert eye_aspect_ratio(np.zeros((478, 2)), LEFT_EYE) == 0.0


@pytest.mark.parametrize("ear,expected", [
    (0.05, 0.0),
    (0.15, 0.0),
    (0.225, 0.5),
    (0.30, 1.0),
    (0.45, 1.0),
])
def test_ear_to_probability(ear, expected):
    assert ear_to_probability(ear) == pytest.approx(expected)


def test_ear_to_probability_rejects_inverted_range():
    with pytest.raises(ValueError):
        ear_to_probability(0.2, ear_closed=0.3, ear_open=0.3)


def test_eye_open_probabilities():
    left, right = eye_open_probabilities(face_landmarks(1.5, 0.5))
    assert left == pytest.approx(1.0)
    assert right == pytest.approx(0.0)


def test_ensure_face_model_downloads_once(tmp_path, monkeypatch):
    fetched = []

    def fake_urlretrieve(url, path):
        fetched.append(url)
        with open(path, "wb") as f:
            f.write(b"model")

    monkeypatch.setattr("safedrive.face_probe.urllib.request.urlretrieve", fake_urlretrieve)
    path = str(tmp_path / "face_landmarker.task")

    assert ensure_face_model(path, url="https://example.invalid/model.task") == path
    assert ensure_face_model(path, url="https://example.invalid/model.task") == path
    assert fetched == ["https://example.invalid/model.task"]
