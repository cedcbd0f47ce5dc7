# alarm.py - Audio cues for attention transitions

import os
import subprocess
import threading

from . import config
from .attention import FaceDetectionState


def default_sound_paths():
    return {
        FaceDetectionState.SAFE: config.SAFE_SOUND_PATH,
        FaceDetectionState.UNSAFE: config.UNSAFE_SOUND_PATH,
        FaceDetectionState.NO_FACE: config.NO_FACE_SOUND_PATH,
    }


class AudioCuePlayer:
    """Plays one cue per visible attention state, stopping the previous one first"""

    def __init__(self, sound_paths=None, player_cmd=("aplay", "-q")):
        self.sound_paths = default_sound_paths() if sound_paths is None else sound_paths
        self.player_cmd = list(player_cmd)
        self.process = None
        self.current = None
        self.lock = threading.Lock()

    @property
    def playing(self):
        return self.process is not None and self.process.poll() is None

    def play_beep(self):
        """Fallback when no sound file or player is available"""
        print('\a', end='', flush=True)

    def play(self, state):
        if not config.AUDIO_ENABLED:
            return
        with self.lock:
            self._stop_locked()
            self.current = state
            path = self.sound_paths.get(state)
            if not path or not os.path.exists(path):
                print(f"[WARN] Missing sound for {state.name}: {path}")
                self.play_beep()
                return
            try:
                self.process = subprocess.Popen(self.player_cmd + [path],
                                                stdout=subprocess.DEVNULL,
                                                stderr=subprocess.DEVNULL)
            except OSError as e:
                print(f"[ERROR] Could not play sound: {e}")
                self.process = None
                self.play_beep()

    def _stop_locked(self):
        if self.playing:
            self.process.terminate()
        self.process = None
        self.current = None

    def stop(self):
        with self.lock:
            self._stop_locked()

    def handle(self, cue):
        """Output-gate callback: suppressed attention silences, otherwise play"""
        if cue.attention is None:
            self.stop()
        else:
            self.play(cue.attention)
