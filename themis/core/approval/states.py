"""Project approval states and transitions.

State Machine Diagram:

    ┌──────────┐
    │  DRAFT   │ ← Initial state (project created)
    └────┬─────┘
         │ SUBMIT
    ┌────▼──────┐  REQUEST_CHANGES  ┌───────────────────┐
    │ SUBMITTED │──────────────────►│ CHANGES_REQUESTED │
    └────┬──────┘◄──────────────────┴───────────────────┘
         │ APPROVE (Sub PMO tier)        SUBMIT    ▲
    ┌────▼─────────────┐  REQUEST_CHANGES          │
    │ SUB_PMO_APPROVED │───────────────────────────┘
    └────┬─────────────┘
         │ APPROVE (Main PMO tier)
    ┌────▼─────┐        ┌──────────┐
    │ APPROVED │        │ REJECTED │ ← REJECT from either review tier
    └──────────┘        └──────────┘

Reserved states:
- SUB_PMO_REVIEW, MAIN_PMO_REVIEW, MAIN_PMO_APPROVED exist for a finer
  three-tier workflow. No transition enters or leaves them.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Set

from themis.core.rbac.permissions import PermissionName
from themis.core.rbac.roles import (
    MAIN_PMO_REVIEWER_ROLES,
    SUB_PMO_REVIEWER_ROLES,
    SUBMITTER_ROLES,
    Role,
    parse_role,
)


class ApprovalStatus(str, Enum):
    """States in the project approval workflow."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    SUB_PMO_REVIEW = "SUB_PMO_REVIEW"
    SUB_PMO_APPROVED = "SUB_PMO_APPROVED"
    MAIN_PMO_REVIEW = "MAIN_PMO_REVIEW"
    MAIN_PMO_APPROVED = "MAIN_PMO_APPROVED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class WorkflowAction(str, Enum):
    """Actions an actor can request against a project's approval state."""

    SUBMIT = "SUBMIT"                    # DRAFT/CHANGES_REQUESTED → SUBMITTED
    APPROVE = "APPROVE"                  # advance one review tier
    REJECT = "REJECT"                    # → REJECTED
    REQUEST_CHANGES = "REQUEST_CHANGES"  # → CHANGES_REQUESTED


class TransitionRule(NamedTuple):
    """Defines a valid state transition and who may trigger it."""
    from_state: ApprovalStatus
    action: WorkflowAction
    to_state: ApprovalStatus
    allowed_roles: FrozenSet[Role]
    requires_comment: bool = False


TRANSITION_RULES: List[TransitionRule] = [
    # Submission
    TransitionRule(ApprovalStatus.DRAFT, WorkflowAction.SUBMIT,
                   ApprovalStatus.SUBMITTED, SUBMITTER_ROLES),
    TransitionRule(ApprovalStatus.CHANGES_REQUESTED, WorkflowAction.SUBMIT,
                   ApprovalStatus.SUBMITTED, SUBMITTER_ROLES),

    # Sub PMO review tier
    TransitionRule(ApprovalStatus.SUBMITTED, WorkflowAction.APPROVE,
                   ApprovalStatus.SUB_PMO_APPROVED, SUB_PMO_REVIEWER_ROLES),
    TransitionRule(ApprovalStatus.SUBMITTED, WorkflowAction.REJECT,
                   ApprovalStatus.REJECTED, SUB_PMO_REVIEWER_ROLES, requires_comment=True),
    TransitionRule(ApprovalStatus.SUBMITTED, WorkflowAction.REQUEST_CHANGES,
                   ApprovalStatus.CHANGES_REQUESTED, SUB_PMO_REVIEWER_ROLES, requires_comment=True),

    # Main PMO review tier
    TransitionRule(ApprovalStatus.SUB_PMO_APPROVED, WorkflowAction.APPROVE,
                   ApprovalStatus.APPROVED, MAIN_PMO_REVIEWER_ROLES),
    TransitionRule(ApprovalStatus.SUB_PMO_APPROVED, WorkflowAction.REJECT,
                   ApprovalStatus.REJECTED, MAIN_PMO_REVIEWER_ROLES, requires_comment=True),
    TransitionRule(ApprovalStatus.SUB_PMO_APPROVED, WorkflowAction.REQUEST_CHANGES,
                   ApprovalStatus.CHANGES_REQUESTED, MAIN_PMO_REVIEWER_ROLES, requires_comment=True),
]

# Lookup table: (state, action) -> rule
TRANSITION_TARGETS: Dict[tuple, TransitionRule] = {
    (rule.from_state, rule.action): rule for rule in TRANSITION_RULES
}

VALID_TRANSITIONS: Dict[ApprovalStatus, Set[WorkflowAction]] = {}
for _rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(_rule.from_state, set()).add(_rule.action)
del _rule


# Permission consulted before each action is attempted
ACTION_PERMISSIONS: Dict[WorkflowAction, PermissionName] = {
    WorkflowAction.SUBMIT: PermissionName.SUBMIT_PROJECT,
    WorkflowAction.APPROVE: PermissionName.APPROVE_PROJECT,
    WorkflowAction.REJECT: PermissionName.APPROVE_PROJECT,
    WorkflowAction.REQUEST_CHANGES: PermissionName.REQUEST_CHANGES,
}

INITIAL_STATE = ApprovalStatus.DRAFT

# No further workflow action is legal
TERMINAL_STATES: FrozenSet[ApprovalStatus] = frozenset([
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
])

# Defined for a three-tier workflow, never targeted by a transition
RESERVED_STATES: FrozenSet[ApprovalStatus] = frozenset([
    ApprovalStatus.SUB_PMO_REVIEW,
    ApprovalStatus.MAIN_PMO_REVIEW,
    ApprovalStatus.MAIN_PMO_APPROVED,
])

# Awaiting a reviewer decision
PENDING_REVIEW_STATES: FrozenSet[ApprovalStatus] = frozenset([
    ApprovalStatus.SUBMITTED,
    ApprovalStatus.SUB_PMO_APPROVED,
])

# The owner can still change the project
OWNER_EDITABLE_STATES: FrozenSet[ApprovalStatus] = frozenset([
    ApprovalStatus.DRAFT,
    ApprovalStatus.CHANGES_REQUESTED,
])

# Progress step shown on review screens; -1 marks a sent-back or closed project
APPROVAL_STEPS: Dict[ApprovalStatus, int] = {
    ApprovalStatus.DRAFT: 0,
    ApprovalStatus.SUBMITTED: 1,
    ApprovalStatus.SUB_PMO_REVIEW: 1,
    ApprovalStatus.SUB_PMO_APPROVED: 2,
    ApprovalStatus.MAIN_PMO_REVIEW: 2,
    ApprovalStatus.MAIN_PMO_APPROVED: 2,
    ApprovalStatus.APPROVED: 3,
    ApprovalStatus.REJECTED: -1,
    ApprovalStatus.CHANGES_REQUESTED: -1,
}


_ANY_ROLE = object()


def parse_status(value: Any) -> Optional[ApprovalStatus]:
    """Resolve an approval status, returning None if unrecognized."""
    if isinstance(value, ApprovalStatus):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return ApprovalStatus(value.strip().upper())
    except ValueError:
        return None


def parse_action(value: Any) -> Optional[WorkflowAction]:
    """Resolve a workflow action, returning None if unrecognized."""
    if isinstance(value, WorkflowAction):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return WorkflowAction(value.strip().upper().replace("-", "_"))
    except ValueError:
        return None


def can_transition(from_state: ApprovalStatus, action: WorkflowAction) -> bool:
    """Check if an action is defined from the given state for some role."""
    return action in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(
    from_state: Any,
    action: Any,
    role: Any = _ANY_ROLE,
) -> Optional[TransitionRule]:
    """
    Get the transition rule for a state/action combination.

    Args:
        from_state: Current approval status
        action: Requested workflow action
        role: When given, the rule is only returned if the role may trigger it.
            A None or unknown role matches nothing

    Returns:
        The matching TransitionRule, or None
    """
    state = parse_status(from_state)
    act = parse_action(action)
    if state is None or act is None:
        return None
    rule = TRANSITION_TARGETS.get((state, act))
    if rule is None:
        return None
    if role is not _ANY_ROLE and parse_role(role) not in rule.allowed_roles:
        return None
    return rule


def get_available_actions(from_state: Any, role: Any) -> List[WorkflowAction]:
    """Actions the role could legally take from a state, ignoring ownership."""
    return [
        action for action in WorkflowAction
        if get_transition_rule(from_state, action, role) is not None
    ]


def approval_step(status: Any) -> int:
    """Progress step for a status (0-3), or -1 when sent back or rejected."""
    state = parse_status(status)
    if state is None:
        return 0
    return APPROVAL_STEPS[state]
