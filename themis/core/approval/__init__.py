"""Approval workflow module for Themis.

Implements the project approval state machine and the service that
persists its transitions.
"""

from .states import ApprovalStatus, WorkflowAction, TRANSITION_RULES, VALID_TRANSITIONS
from .machine import ApprovalStateMachine, can_edit_in_state, next_state
from .service import ApprovalService

__all__ = [
    "ApprovalStatus",
    "WorkflowAction",
    "TRANSITION_RULES",
    "VALID_TRANSITIONS",
    "ApprovalStateMachine",
    "ApprovalService",
    "can_edit_in_state",
    "next_state",
]
