#!/usr/bin/env python3
"""
main.py - SafeDrive camera runner.
Feeds eye-open probabilities from the webcam and vehicle transitions from
the keyboard into the detection pipeline, and shows the resulting banner.

Keys: 'q' quit, 's' statistics, 'v' toggle in/out of vehicle.
"""

import cv2
import time
import threading
import argparse
from datetime import datetime

from . import config
from .alarm import AudioCuePlayer
from .attention import FaceDetectionState
from .face_probe import EyeOpennessProbe
from .pipeline import DetectionPipeline
from .session import DriveSession, banner_text
from .vehicle import IN_VEHICLE, STILL, transition_from_activity

BANNER_COLORS = {
    FaceDetectionState.SAFE: (0, 100, 0),
    FaceDetectionState.UNSAFE: (0, 0, 139),
    FaceDetectionState.NO_FACE: (0, 140, 200),
    None: (60, 60, 60),
}


class DisplayState:
    """Latest cue, written by the pipeline consumer and read by the UI loop"""

    def __init__(self):
        self.lock = threading.Lock()
        self.cue = None

    def update(self, cue):
        with self.lock:
            self.cue = cue

    def get(self):
        with self.lock:
            return self.cue


def init_camera(index):
    """Opens the webcam, or returns None"""
    print(f"[INFO] Opening camera {index}...")
    cap = cv2.VideoCapture(index)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.CAMERA_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.CAMERA_HEIGHT)
    cap.set(cv2.CAP_PROP_FPS, config.CAMERA_FPS)
    if not cap.isOpened():
        return None
    print("[INFO] OpenCV VideoCapture initialized")
    return cap


def draw_banner(frame, cue):
    text = banner_text(cue) if cue is not None else "Starting..."
    color = BANNER_COLORS[cue.attention if cue is not None else None]
    w = frame.shape[1]
    cv2.rectangle(frame, (0, 0), (w, 36), color, -1)
    cv2.putText(frame, text, (10, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)


def print_statistics(stats, title="STATISTICS"):
    print("\n" + "=" * 40)
    print(f"{title}:")
    for key, value in stats.items():
        print(f"  {key.replace('_', ' ').capitalize()}: {value}")
    print("=" * 40 + "\n")


def toggle_vehicle(pipeline, in_car):
    """Requests the opposite of the last requested presence and returns it"""
    activity = STILL if in_car else IN_VEHICLE
    print(f"[INFO] Simulated activity: {activity}")
    pipeline.submit_vehicle(transition_from_activity(activity))
    return not in_car


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='SafeDrive - eyes-on-road monitor')
    parser.add_argument('--camera', type=int, default=config.CAMERA_INDEX,
                        help=f'Camera index (default: {config.CAMERA_INDEX})')
    parser.add_argument('--in-car', action='store_true',
                        help='Start as if the device were already in a vehicle')
    parser.add_argument('--no-display', action='store_true',
                        help='Disable the preview window (for SSH)')
    parser.add_argument('--no-audio', action='store_true',
                        help='Disable audio cues')
    parser.add_argument('--log-events', action='store_true',
                        help=f'Append transitions to {config.LOG_FILE}')
    parser.add_argument('--unsafe-below', type=float, default=None,
                        help='Eye-open probability below which eyes count as closed')
    parser.add_argument('--safe-above', type=float, default=None,
                        help='Eye-open probability above which eyes count as open')
    parser.add_argument('--save-thresholds', action='store_true',
                        help='Persist the eye thresholds for later runs')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.no_display:
        config.DISPLAY_ENABLED = False
    if args.no_audio:
        config.AUDIO_ENABLED = False
    if args.log_events:
        config.LOG_EVENTS = True

    try:
        unsafe_below, safe_above = config.load_eye_thresholds()
        if args.unsafe_below is not None:
            unsafe_below = args.unsafe_below
        if args.safe_above is not None:
            safe_above = args.safe_above
        config.validate_eye_thresholds(unsafe_below, safe_above)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 2
    if args.save_thresholds:
        config.save_eye_thresholds(unsafe_below, safe_above)

    print("=" * 60)
    print("  SAFEDRIVE - EYES ON THE ROAD")
    print("=" * 60)
    print(f"[INFO] Start: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"[INFO] Display: {'ON' if config.DISPLAY_ENABLED else 'OFF'}")
    print(f"[INFO] Audio: {'ON' if config.AUDIO_ENABLED else 'OFF'}")
    print(f"[INFO] Eye thresholds: unsafe < {unsafe_below:.2f}, safe > {safe_above:.2f}")
    print("=" * 60)

    try:
        probe = EyeOpennessProbe()
    except Exception as e:
        print(f"[ERROR] Initialization failed: {e}")
        return 1

    camera = init_camera(args.camera)
    if camera is None:
        print("[ERROR] Camera not available")
        probe.close()
        return 1

    audio = AudioCuePlayer()
    display = DisplayState()

    def on_output(cue):
        display.update(cue)
        audio.handle(cue)
        print(f"[{datetime.now().strftime('%H:%M:%S')}] {banner_text(cue)}")

    session = DriveSession()
    pipeline = DetectionPipeline(session, on_output=on_output,
                                 unsafe_below=unsafe_below, safe_above=safe_above)
    pipeline.start()
    # Presence as requested from here; the consumer may not have applied it yet
    in_car = False
    if args.in_car:
        in_car = toggle_vehicle(pipeline, in_car)

    frame_count = 0
    start_time = time.time()

    print("\n[INFO] System active! 'q' quit, 's' statistics, 'v' toggle vehicle")
    print("-" * 60)

    try:
        while True:
            ret, frame = camera.read()
            if not ret:
                print("[ERROR] Could not read frame")
                break
            frame_count += 1

            left = right = None
            if in_car:
                try:
                    left, right, landmarks_np = probe.measure(frame)
                except Exception as e:
                    # Skip the frame; the session just gets no observation
                    print(f"[ERROR] Face detection failed: {e}")
                    left = right = None
                else:
                    pipeline.submit_face(left, right)
                    if landmarks_np is not None and config.DISPLAY_ENABLED:
                        probe.draw(frame, landmarks_np)

            if config.DISPLAY_ENABLED:
                draw_banner(frame, display.get())
                if config.SHOW_PROBABILITIES and left is not None:
                    cv2.putText(frame, f"L: {left:.2f}  R: {right:.2f}", (10, 60),
                                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 2)
                cv2.imshow("SafeDrive", frame)

                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    print("\n[INFO] Exit requested by user")
                    break
                elif key == ord('s'):
                    print_statistics(pipeline.get_statistics())
                elif key == ord('v'):
                    in_car = toggle_vehicle(pipeline, in_car)
            else:
                time.sleep(0.03)

    except KeyboardInterrupt:
        print("\n[INFO] Keyboard interrupt (Ctrl+C)")

    finally:
        print("\n[INFO] Shutting down...")
        pipeline.stop()
        audio.stop()
        camera.release()
        probe.close()
        if config.DISPLAY_ENABLED:
            cv2.destroyAllWindows()

        elapsed = time.time() - start_time
        stats = pipeline.get_statistics()
        stats["frames_captured"] = frame_count
        stats["elapsed_s"] = round(elapsed, 1)
        print_statistics(stats, "FINAL STATISTICS")
        if config.LOG_EVENTS:
            print(f"[INFO] Event log: {config.LOG_FILE}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
