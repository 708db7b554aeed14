"""Approval state machine implementation.

``next_state`` is the pure transition function. ``ApprovalStateMachine``
wraps it for a single project: it consults the capability engine, enforces
review comments, records history and runs callbacks. Neither raises for a
refused action; both return a falsy denial instead.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Union

from themis.core.outcomes import (
    DenialReason,
    IllegalTransition,
    InvalidRequest,
    PermissionDenied,
)
from themis.core.rbac.checker import RoleCapabilityEngine, default_engine
from themis.core.rbac.context import Actor, ResourceContext
from themis.core.rbac.roles import FINAL_AUTHORITY_ROLES, Role, parse_role

from .states import (
    ACTION_PERMISSIONS,
    OWNER_EDITABLE_STATES,
    TERMINAL_STATES,
    ApprovalStatus,
    TransitionRule,
    WorkflowAction,
    get_available_actions,
    get_transition_rule,
    parse_action,
    parse_status,
)

logger = logging.getLogger(__name__)

TransitionResult = Union[ApprovalStatus, PermissionDenied, IllegalTransition, InvalidRequest]


def _value(obj: Any) -> Optional[str]:
    if obj is None:
        return None
    return getattr(obj, "value", None) or str(obj)


def next_state(
    current: Any,
    actor_role: Any,
    action: Any,
) -> Union[ApprovalStatus, IllegalTransition]:
    """
    Compute the successor state for an action.

    Args:
        current: Current approval status
        actor_role: Role of the acting user
        action: Requested workflow action

    Returns:
        The next ApprovalStatus, or IllegalTransition when no transition is
        defined for this (state, role, action) combination
    """
    state = parse_status(current)
    role = parse_role(actor_role)
    act = parse_action(action)

    details = {
        "from_state": _value(state) or _value(current),
        "action": _value(act) or _value(action),
        "role": _value(role) or _value(actor_role),
    }

    if state is None or act is None:
        return IllegalTransition(
            DenialReason.ILLEGAL_TRANSITION,
            f"Unknown state or action: {details['from_state']} / {details['action']}",
            details,
        )

    if state in TERMINAL_STATES:
        return IllegalTransition(
            DenialReason.ILLEGAL_TRANSITION,
            f"Project is {state.value}; no further workflow actions are allowed",
            details,
        )

    rule = get_transition_rule(state, act, role)
    if rule is None:
        return IllegalTransition(
            DenialReason.ILLEGAL_TRANSITION,
            f"Cannot {act.value.lower().replace('_', ' ')} a {state.value} project "
            f"as {details['role'] or 'an unknown role'}",
            details,
        )

    return rule.to_state


def can_edit_in_state(actor: Optional[Actor], context: ResourceContext) -> bool:
    """
    Decide whether the project form is editable for this actor.

    Owners edit while the project is a draft or sent back; Admin and Main PMO
    edit in any state; Sub PMO edits while the project is under first review.
    """
    if actor is None:
        return False
    role = parse_role(actor.role)
    if role is None or role == Role.PENDING:
        return False
    state = parse_status(context.current_approval_status) or ApprovalStatus.DRAFT

    if context.owned_by(actor) and state in OWNER_EDITABLE_STATES:
        return True
    if role in FINAL_AUTHORITY_ROLES:
        return True
    if role == Role.SUB_PMO and state in (ApprovalStatus.SUBMITTED, ApprovalStatus.SUB_PMO_REVIEW):
        return True
    return False


class ApprovalStateMachine:
    """
    State machine for a single project's approval workflow.

    Manages transitions with:
    - Permission checks through the capability engine
    - Validation against the transition table
    - Required review comments
    - In-memory history of applied transitions
    - Callback hooks for side effects
    """

    def __init__(
        self,
        entity_id: Any,
        current_state: ApprovalStatus,
        *,
        engine: Optional[RoleCapabilityEngine] = None,
        comment_required_for: Optional[FrozenSet[WorkflowAction]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            entity_id: ID of the project
            current_state: Current approval status
            engine: Capability engine (defaults to the built-in catalogue)
            comment_required_for: Actions that must carry a comment. Defaults
                to every action the transition table flags
        """
        self.entity_id = entity_id
        self._state = parse_status(current_state) or ApprovalStatus.DRAFT
        self.engine = engine or default_engine
        self.comment_required_for = comment_required_for
        self._transition_history: List[Dict[str, Any]] = []
        self._callbacks: Dict[WorkflowAction, List[Callable[[Dict[str, Any]], None]]] = {}

    @property
    def state(self) -> ApprovalStatus:
        """Current state of the project."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal (no further transitions)."""
        return self._state in TERMINAL_STATES

    def can_perform(
        self,
        action: WorkflowAction,
        actor: Optional[Actor],
        context: Optional[ResourceContext] = None,
    ) -> bool:
        """Check if the actor may perform an action from the current state."""
        act = parse_action(action)
        if act is None or actor is None:
            return False
        if not self.engine.evaluate(ACTION_PERMISSIONS[act], actor, context):
            return False
        return bool(next_state(self._state, actor.role, act))

    def get_available_actions(
        self,
        actor: Optional[Actor],
        context: Optional[ResourceContext] = None,
    ) -> List[WorkflowAction]:
        """Get the actions the actor can perform from the current state."""
        if actor is None:
            return []
        return [
            action for action in get_available_actions(self._state, actor.role)
            if self.engine.evaluate(ACTION_PERMISSIONS[action], actor, context)
        ]

    def transition(
        self,
        action: Any,
        actor: Optional[Actor],
        context: Optional[ResourceContext] = None,
        *,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Perform a state transition.

        Args:
            action: The workflow action to perform
            actor: Acting user
            context: Resource descriptor for ownership and department checks
            comment: Review comment (required for some transitions)
            metadata: Additional metadata to record

        Returns:
            The new state, or a denial leaving the state untouched
        """
        act = parse_action(action)
        if act is None:
            return next_state(self._state, actor.role if actor else None, action)

        # Check permission
        denial = self.engine.explain(ACTION_PERMISSIONS[act], actor, context)
        if denial is not None:
            logger.info(f"Denied {act.value} on {self.entity_id}: {denial.message}")
            return denial

        # Validate against the transition table
        result = next_state(self._state, actor.role, act)
        if not result:
            logger.info(f"Illegal {act.value} on {self.entity_id}: {result.message}")
            return result

        rule = get_transition_rule(self._state, act)
        if self._requires_comment(rule) and not (comment or "").strip():
            return InvalidRequest(
                DenialReason.COMMENT_REQUIRED,
                f"A comment is required to {act.value.lower().replace('_', ' ')}",
                {"action": act.value, "from_state": self._state.value},
            )

        # Record the transition
        from_state = self._state
        transition_record = {
            "id": uuid.uuid4(),
            "entity_id": self.entity_id,
            "from_state": from_state.value,
            "to_state": result.value,
            "action": act.value,
            "actor_id": actor.user_id,
            "actor_role": _value(actor.resolved_role),
            "comment": comment,
            "metadata": metadata or {},
            "timestamp": datetime.now(timezone.utc),
        }
        self._transition_history.append(transition_record)

        # Update state
        self._state = result

        # Execute callbacks
        self._execute_callbacks(act, transition_record)

        return self._state

    def _requires_comment(self, rule: TransitionRule) -> bool:
        if not rule.requires_comment:
            return False
        return self.comment_required_for is None or rule.action in self.comment_required_for

    def register_callback(
        self,
        action: WorkflowAction,
        callback: Callable[[Dict[str, Any]], None],
    ) -> None:
        """
        Register a callback to be executed after a transition.

        Args:
            action: The action to hook
            callback: Function to call with the transition record
        """
        self._callbacks.setdefault(action, []).append(callback)

    def get_history(self) -> List[Dict[str, Any]]:
        """Get the transitions applied through this machine."""
        return self._transition_history.copy()

    def _execute_callbacks(self, action: WorkflowAction, record: Dict[str, Any]) -> None:
        """Execute registered callbacks for an action."""
        for callback in self._callbacks.get(action, []):
            try:
                callback(record)
            except Exception:
                # Side effects never undo an applied transition
                logger.exception(f"Callback error for {action.value} on {self.entity_id}")
