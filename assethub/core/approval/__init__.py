"""Approval workflow module for Asset Hub.

Implements the approval state machine, approver resolution and the side
effects applied when a request is approved.
"""

from .states import ApprovalStatus, ApprovalAction, OperationStatus, VALID_TRANSITIONS
from .machine import ApprovalStateMachine
from .approver import ResolvedApprover, resolve_approver
from .effects import SubjectKind, apply_side_effect
from .service import ApprovalService, NotificationPropagator

__all__ = [
    "ApprovalStatus",
    "ApprovalAction",
    "OperationStatus",
    "VALID_TRANSITIONS",
    "ApprovalStateMachine",
    "ResolvedApprover",
    "resolve_approver",
    "SubjectKind",
    "apply_side_effect",
    "ApprovalService",
    "NotificationPropagator",
]
