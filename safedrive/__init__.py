# SafeDrive package
# Attention debouncing, vehicle gating and the serialized detection pipeline

from .attention import AttentionDebouncer, FaceDetectionState, ValidationError, classify_eyes
from .vehicle import InCarState, VehiclePresenceGate, VehicleTransition
from .session import DriveSession, OutputGate
from .pipeline import DetectionPipeline, EventChannel, RateLimiter
from . import config
