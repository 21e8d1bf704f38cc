"""Approval request states and transitions.

State Machine Diagram:

                 ┌──────────┐
                 │ PENDING  │ ← Initial state (request submitted)
                 └────┬─────┘
                      │
        ┌─────────────┼──────────────┐
        │ approve     │ reject       │ cancel
   ┌────▼─────┐  ┌────▼─────┐  ┌─────▼─────┐
   │ APPROVED │  │ REJECTED │  │ CANCELLED │
   └──────────┘  └──────────┘  └───────────┘

All three outcomes are terminal. Only APPROVED applies the request's side
effect; REJECTED and CANCELLED cancel the linked operation.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class ApprovalStatus(str, Enum):
    """Status of an approval request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalAction(str, Enum):
    """Actions an actor may submit against a pending request."""

    APPROVE = "approve"      # PENDING → APPROVED
    REJECT = "reject"        # PENDING → REJECTED
    CANCEL = "cancel"        # PENDING → CANCELLED


class OperationStatus(str, Enum):
    """Status of the asset/consumable operation linked to a request."""

    PENDING = "pending"
    DONE = "done"
    CANCELLED = "cancelled"


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ApprovalStatus
    to_state: ApprovalStatus
    action: ApprovalAction
    applies_side_effect: bool = False
    default_result: str = ""


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.APPROVED, ApprovalAction.APPROVE,
                   applies_side_effect=True, default_result="审批通过"),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.REJECTED, ApprovalAction.REJECT,
                   default_result="审批驳回"),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.CANCELLED, ApprovalAction.CANCEL,
                   default_result="审批已撤销"),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApprovalStatus, Set[ApprovalAction]] = {}
TRANSITION_TARGETS: Dict[tuple[ApprovalStatus, ApprovalAction], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.action)
    TRANSITION_TARGETS[(rule.from_state, rule.action)] = rule


TERMINAL_STATES: Set[ApprovalStatus] = {
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.CANCELLED,
}

# Linked operation status once the request reaches each terminal state
OPERATION_OUTCOME: Dict[ApprovalStatus, OperationStatus] = {
    ApprovalStatus.APPROVED: OperationStatus.DONE,
    ApprovalStatus.REJECTED: OperationStatus.CANCELLED,
    ApprovalStatus.CANCELLED: OperationStatus.CANCELLED,
}


def can_transition(from_state: ApprovalStatus, action: ApprovalAction) -> bool:
    """Check if an action is valid from the given state."""
    return action in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: ApprovalStatus, action: ApprovalAction) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, action))


def get_target_state(from_state: ApprovalStatus, action: ApprovalAction) -> Optional[ApprovalStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, action)
    return rule.to_state if rule else None


def is_terminal(status: ApprovalStatus) -> bool:
    return status in TERMINAL_STATES
