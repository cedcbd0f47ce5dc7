import pytest

from safedrive import config
from safedrive.alarm import AudioCuePlayer
from safedrive.attention import FaceDetectionState
from safedrive.session import Cue
from safedrive.vehicle import InCarState


class FakeProcess:
    def __init__(self, args, **kwargs):
        self.args = args
        self.terminated = False

    def poll(self):
        return 0 if self.terminated else None

    def terminate(self):
        self.terminated = True


@pytest.fixture
def sounds(tmp_path):
    paths = {}
    for state in FaceDetectionState:
        path = tmp_path / f"{state.value}.wav"
        path.write_bytes(b"RIFF")
        paths[state] = str(path)
    return paths


@pytest.fixture
def popen(monkeypatch):
    started = []

    def fake_popen(args, **kwargs):
        process = FakeProcess(args, **kwargs)
        started.append(process)
        return process

    monkeypatch.setattr("safedrive.alarm.subprocess.Popen", fake_popen)
    monkeypatch.setattr(config, "AUDIO_ENABLED", True)
    return started


def test_play_stops_previous_cue(sounds, popen):
    player = AudioCuePlayer(sounds)
    player.play(FaceDetectionState.SAFE)
    player.play(FaceDetectionState.UNSAFE)

    assert len(popen) == 2
    assert popen[0].terminated
    assert popen[1].args == ["aplay", "-q", sounds[FaceDetectionState.UNSAFE]]
    assert player.playing
    assert player.current is FaceDetectionState.UNSAFE


def test_handle_suppressed_cue_stops(sounds, popen):
    player = AudioCuePlayer(sounds)
    player.handle(Cue(InCarState.IN_CAR, FaceDetectionState.NO_FACE))
    player.handle(Cue(InCarState.OUT_CAR, None))
    assert popen[0].terminated
    assert not player.playing


def test_disabled_audio(sounds, popen, monkeypatch):
    monkeypatch.setattr(config, "AUDIO_ENABLED", False)
    AudioCuePlayer(sounds).play(FaceDetectionState.SAFE)
    assert popen == []


def test_missing_sound_falls_back_to_beep(popen, capsys):
    player = AudioCuePlayer({})
    player.play(FaceDetectionState.UNSAFE)
    assert popen == []
    assert "[WARN]" in capsys.readouterr().out


def test_player_error_falls_back_to_beep(sounds, monkeypatch, capsys):
    def failing_popen(args, **kwargs):
        raise FileNotFoundError("aplay")

    monkeypatch.setattr("safedrive.alarm.subprocess.Popen", failing_popen)
    monkeypatch.setattr(config, "AUDIO_ENABLED", True)
    player = AudioCuePlayer(sounds)
    player.play(FaceDetectionState.SAFE)
    assert not player.playing
    assert "[ERROR]" in capsys.readouterr().out
