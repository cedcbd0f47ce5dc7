"""
vehicle.py - In-car / out-of-car gate driven by activity transitions.
"""

from enum import Enum


class InCarState(Enum):
    IN_CAR = "in_car"
    OUT_CAR = "out_car"


class VehicleTransition(Enum):
    ENTER = "enter"
    EXIT = "exit"
    UNKNOWN = "unknown"


# Activity names reported by the activity-recognition collaborator
IN_VEHICLE = "IN_VEHICLE"
STILL = "STILL"
UNKNOWN = "UNKNOWN"


def transition_from_activity(activity):
    """Only a most-probable IN_VEHICLE activity counts as entering the car"""
    if activity is not None and str(activity).upper() == IN_VEHICLE:
        return VehicleTransition.ENTER
    if activity is not None and str(activity).upper() == STILL:
        return VehicleTransition.EXIT
    return VehicleTransition.UNKNOWN


class VehiclePresenceGate:
    """Two-state flip; transitions are assumed to be debounced upstream"""

    def __init__(self):
        self.state = InCarState.OUT_CAR

    @property
    def in_car(self):
        return self.state is InCarState.IN_CAR

    def on_transition(self, event):
        """Applies ENTER / EXIT / UNKNOWN and returns the new state"""
        if event is VehicleTransition.ENTER:
            self.state = InCarState.IN_CAR
        else:
            self.state = InCarState.OUT_CAR
        return self.state
