"""
State machine for the tree moderation lifecycle.

SUBMITTED is the initial state; APPROVED and REJECTED are terminal. The only
action is a moderation outcome (approve or reject). Who may moderate is
decided by the permission evaluator, not here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class TreeStatus(str, Enum):
    """Moderation status of a tree record."""

    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ModerationOutcome(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


INITIAL_STATUS = TreeStatus.SUBMITTED

# (from_state, outcome) -> to_state. Pairs not listed are invalid.
_TRANSITIONS: Dict[Tuple[TreeStatus, ModerationOutcome], TreeStatus] = {
    (TreeStatus.SUBMITTED, ModerationOutcome.APPROVE): TreeStatus.APPROVED,
    (TreeStatus.SUBMITTED, ModerationOutcome.REJECT): TreeStatus.REJECTED,
}


@dataclass(frozen=True)
class TransitionResult:
    """Either the new state or an invalid-transition failure."""

    from_state: TreeStatus
    outcome: ModerationOutcome
    to_state: Optional[TreeStatus] = None

    @property
    def ok(self) -> bool:
        return self.to_state is not None

    @property
    def error(self) -> Optional[str]:
        if self.ok:
            return None
        return f"Invalid transition: {self.from_state.value} --{self.outcome.value}-->"


def transition(current: TreeStatus, outcome: ModerationOutcome) -> TransitionResult:
    """Apply a moderation outcome to the current state."""
    return TransitionResult(
        from_state=current,
        outcome=outcome,
        to_state=_TRANSITIONS.get((current, outcome)),
    )


def valid_transitions(from_state: TreeStatus) -> List[TreeStatus]:
    """Return list of valid target states from given state."""
    return sorted(
        {t for (f, _), t in _TRANSITIONS.items() if f == from_state},
        key=lambda s: s.value,
    )


def is_terminal(state: TreeStatus) -> bool:
    return not valid_transitions(state)
