"""Session state machine for slide-building conversations."""

from .state import SessionPhase, SessionState, ErrorBanner, ThinkingStep, StepStatus
from .controller import SessionController
from . import transitions

__all__ = [
    "SessionPhase",
    "SessionState",
    "ErrorBanner",
    "ThinkingStep",
    "StepStatus",
    "SessionController",
    "transitions",
]
