"""Orchestration layer - tree lifecycle state machine and authorization gate."""

from citytrees.orchestration.state_machine import (
    ModerationOutcome,
    TransitionResult,
    TreeStatus,
    transition,
)
from citytrees.orchestration.authorization_gate import AuthorizationGate

__all__ = [
    "AuthorizationGate",
    "ModerationOutcome",
    "TransitionResult",
    "TreeStatus",
    "transition",
]
