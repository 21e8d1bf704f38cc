"""Approval state machine implementation.

Validates transitions for a single approval request and builds the
transition record the service persists.
"""

from datetime import datetime
from typing import Optional, Dict, Any, Union

from assethub.core.exceptions import AlreadyFinalized, ValidationError
from assethub.db.base import utcnow

from .states import (
    ApprovalStatus,
    ApprovalAction,
    TransitionRule,
    get_transition_rule,
    TERMINAL_STATES,
)


def parse_action(action: Union[str, ApprovalAction]) -> ApprovalAction:
    try:
        return ApprovalAction(action)
    except ValueError:
        raise ValidationError(f"Unsupported approval action: {action}", field="action") from None


class ApprovalStateMachine:
    """
    State machine for one approval request.

    Only ``pending`` has outgoing transitions. Submitting any action against
    a terminal request raises AlreadyFinalized, including a repeat of the
    action that finalized it.
    """

    def __init__(self, request_id: str, current_state: Union[str, ApprovalStatus]):
        """
        Initialize the state machine.

        Args:
            request_id: ID of the approval request
            current_state: Current approval status
        """
        self.request_id = request_id
        self._state = ApprovalStatus(current_state)
        self._last_record: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> ApprovalStatus:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def last_transition(self) -> Optional[Dict[str, Any]]:
        return self._last_record

    def can_perform(self, action: Union[str, ApprovalAction]) -> bool:
        return get_transition_rule(self._state, parse_action(action)) is not None

    def available_actions(self) -> list[ApprovalAction]:
        return [a for a in ApprovalAction if get_transition_rule(self._state, a)]

    def transition(
        self,
        action: Union[str, ApprovalAction],
        *,
        actor_id: Optional[str] = None,
        comment: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> TransitionRule:
        """
        Perform a transition.

        Args:
            action: The action to perform
            actor_id: ID of the user performing the transition
            comment: Optional outcome comment
            at: Transition time, defaults to now

        Returns:
            The rule that was applied

        Raises:
            ValidationError: If the action is unknown
            AlreadyFinalized: If the request is no longer pending
        """
        action = parse_action(action)

        if self.is_terminal:
            raise AlreadyFinalized(
                f"Approval request {self.request_id} is already {self._state.value}",
                request_id=self.request_id,
                status=self._state.value,
            )

        rule = get_transition_rule(self._state, action)
        if not rule:
            raise ValidationError(
                f"Cannot {action.value} from state {self._state.value}",
                request_id=self.request_id,
            )

        self._last_record = {
            "request_id": self.request_id,
            "from_state": self._state.value,
            "to_state": rule.to_state.value,
            "action": action.value,
            "actor_id": actor_id,
            "comment": comment,
            "result": comment or rule.default_result,
            "timestamp": at or utcnow(),
        }
        self._state = rule.to_state
        return rule
