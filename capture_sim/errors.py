"""
FlickCatch Simulation: Errors
"""


class CaptureSimError(Exception):
    """Base class for capture simulation errors."""


class InvalidTransition(CaptureSimError):
    """An action was requested in a phase that does not allow it.

    The state machine is left unchanged; callers log and carry on.
    """

    def __init__(self, action: str, phase):
        self.action = action
        self.phase = phase
        super().__init__(f"Cannot {action} while {getattr(phase, 'value', phase)}")
