import numpy as np
import pytest

from safedrive import main
from safedrive.attention import FaceDetectionState
from safedrive.pipeline import DetectionPipeline
from safedrive.session import Cue, DriveSession
from safedrive.vehicle import InCarState, VehicleTransition


def test_parse_args():
    args = main.parse_args(["--in-car", "--no-display", "--safe-above", "0.6"])
    assert args.in_car and args.no_display
    assert args.safe_above == 0.6
    assert args.unsafe_below is None


def test_invalid_thresholds_exit_early(monkeypatch, capsys):
    monkeypatch.setattr(main.config, "load_eye_thresholds", lambda: (0.1, 0.4))
    monkeypatch.setattr(main.config, "DISPLAY_ENABLED", True)
    monkeypatch.setattr(main.config, "AUDIO_ENABLED", True)
    assert main.main(["--unsafe-below", "0.5", "--no-display", "--no-audio"]) == 2
    assert "[ERROR]" in capsys.readouterr().out


def test_toggle_vehicle_alternates_before_consumer_catches_up():
    display = main.DisplayState()
    pipeline = DetectionPipeline(DriveSession(), on_output=display.update)

    in_car = main.toggle_vehicle(pipeline, False)
    assert in_car
    in_car = main.toggle_vehicle(pipeline, in_car)
    assert not in_car

    assert pipeline.drain() == [Cue(InCarState.IN_CAR, FaceDetectionState.NO_FACE),
                                Cue(InCarState.OUT_CAR, None)]
    assert display.get() == Cue(InCarState.OUT_CAR, None)


def test_draw_banner():
    frame = np.zeros((120, 320, 3), dtype=np.uint8)
    main.draw_banner(frame, Cue(InCarState.IN_CAR, FaceDetectionState.UNSAFE))
    assert tuple(frame[5, 5]) == main.BANNER_COLORS[FaceDetectionState.UNSAFE]
    main.draw_banner(frame, None)
    assert tuple(frame[5, 5]) == main.BANNER_COLORS[None]


class FlakyProbe:
    """Detector whose first measurement fails"""

    def __init__(self):
        self.calls = 0
        self.closed = False

    def measure(self, frame):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("detector hiccup")
        return 0.9, 0.9, None

    def draw(self, frame, landmarks_np):
        pass

    def close(self):
        self.closed = True


class FakeCamera:
    def __init__(self, frames):
        self.remaining = frames
        self.released = False

    def read(self):
        if self.remaining == 0:
            return False, None
        self.remaining -= 1
        return True, np.zeros((48, 64, 3), dtype=np.uint8)

    def release(self):
        self.released = True


@pytest.fixture
def headless(monkeypatch):
    monkeypatch.setattr(main.config, "load_eye_thresholds", lambda: (0.1, 0.4))
    monkeypatch.setattr(main.config, "DISPLAY_ENABLED", True)
    monkeypatch.setattr(main.config, "AUDIO_ENABLED", True)
    monkeypatch.setattr(main.config, "LOG_EVENTS", False)
    monkeypatch.setattr(main.time, "sleep", lambda seconds: None)


def test_detector_failure_skips_frame(monkeypatch, headless, capsys):
    probe = FlakyProbe()
    camera = FakeCamera(20)
    monkeypatch.setattr(main, "EyeOpennessProbe", lambda: probe)
    monkeypatch.setattr(main, "init_camera", lambda index: camera)

    assert main.main(["--in-car", "--no-display", "--no-audio"]) == 0

    out = capsys.readouterr().out
    assert "[ERROR] Face detection failed: detector hiccup" in out
    assert probe.calls == 20
    assert "Frames captured: 20" in out
    assert probe.closed and camera.released


def test_invalid_saved_thresholds_exit_early(monkeypatch, headless, capsys):
    def bad_file():
        return main.config.validate_eye_thresholds(0.5, 0.2)

    monkeypatch.setattr(main.config, "load_eye_thresholds", bad_file)
    assert main.main(["--no-display", "--no-audio"]) == 2
    assert "[ERROR] Invalid eye thresholds" in capsys.readouterr().out
