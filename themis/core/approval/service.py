"""Approval service for managing project approval workflows.

Provides the high-level API around the approval state machine: loading
projects, consulting the capability engine, persisting the resulting state
with its history, and notifying the audit sink. It is the only writer of
``Project.approval_status``.

Refusals are returned as denials, never raised, so batch callers can keep
going after a single failure.
"""

import logging
import uuid
from typing import Any, Dict, FrozenSet, List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from themis.core.config import Settings, get_settings
from themis.core.outcomes import (
    Denial,
    DenialReason,
    IllegalTransition,
    InvalidRequest,
    PermissionDenied,
    StaleState,
)
from themis.core.rbac.checker import RoleCapabilityEngine, default_engine
from themis.core.rbac.context import Actor, ResourceContext
from themis.core.rbac.permissions import PermissionName
from themis.core.rbac.roles import AccessLevel, get_access_level
from themis.db.models import ApprovalHistory, Project
from themis.services.notifications import TransitionEvent, TransitionNotifier

from .machine import ApprovalStateMachine, can_edit_in_state
from .states import (
    INITIAL_STATE,
    PENDING_REVIEW_STATES,
    TERMINAL_STATES,
    WorkflowAction,
    approval_step,
    get_transition_rule,
    parse_action,
    parse_status,
)

logger = logging.getLogger(__name__)

ProjectResult = Union[Dict[str, Any], Denial]


class ApprovalService:
    """
    High-level service for managing project approvals.

    Handles:
    - Creating projects in the initial DRAFT state
    - Performing state transitions with persistence and history
    - Optimistic concurrency through the project version
    - Visibility-scoped listing and review queues
    - Batch operations
    """

    def __init__(
        self,
        db: Session,
        *,
        engine: Optional[RoleCapabilityEngine] = None,
        notifier: Optional[TransitionNotifier] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the approval service.

        Args:
            db: Database session
            engine: Capability engine (defaults to the built-in catalogue)
            notifier: Audit/notification sink for applied transitions
            settings: Application settings
        """
        self.db = db
        self.engine = engine or default_engine
        self.notifier = notifier or TransitionNotifier()
        self.settings = settings or get_settings()

    def create_project(
        self,
        actor: Actor,
        name: str,
        *,
        description: Optional[str] = None,
        department_id: Optional[str] = None,
    ) -> ProjectResult:
        """
        Create a new project owned by the actor.

        Returns:
            Project dictionary, or PermissionDenied
        """
        denial = self.engine.explain(PermissionName.CREATE_PROJECT, actor)
        if denial is not None:
            logger.info(f"Project creation denied: {denial.message}")
            return denial

        if actor.user_id is None:
            return PermissionDenied(
                DenialReason.PERMISSION_DENIED,
                "A project owner needs a user id",
                {"permission": PermissionName.CREATE_PROJECT.value},
            )

        project = Project(
            id=uuid.uuid4(),
            name=name,
            description=description,
            owner_id=str(actor.user_id),
            department_id=department_id or actor.department_id,
            approval_status=INITIAL_STATE.value,
        )
        self.db.add(project)
        self.db.flush()

        logger.info(f"Project {project.id} created by {actor.user_id}")
        return self._project_to_dict(project)

    def get_project(self, project_id: Any) -> Optional[Dict[str, Any]]:
        """Get a project by ID, without visibility checks."""
        project = self._load(project_id)
        return self._project_to_dict(project) if project else None

    def view_project(self, project_id: Any, actor: Actor) -> ProjectResult:
        """Get a project the actor is allowed to see."""
        project = self._load(project_id)
        if project is None:
            return self._not_found(project_id)

        if not self.engine.can_view(actor, self.context_for(project)):
            return PermissionDenied(
                DenialReason.PERMISSION_DENIED,
                "Project is outside your visibility scope",
                {"project_id": str(project.id)},
            )
        return self._project_to_dict(project)

    def update_project(
        self,
        project_id: Any,
        actor: Actor,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ProjectResult:
        """
        Edit project details.

        Requires EDIT_PROJECT and a state in which the actor's form is editable.
        """
        project = self._load(project_id, for_update=True)
        if project is None:
            return self._not_found(project_id)

        stale = self._check_version(project, expected_version)
        if stale is not None:
            return stale

        context = self.context_for(project)
        denial = self.engine.explain(PermissionName.EDIT_PROJECT, actor, context)
        if denial is not None:
            return denial

        if not can_edit_in_state(actor, context):
            return PermissionDenied(
                DenialReason.PERMISSION_DENIED,
                f"Project cannot be edited while {project.approval_status}",
                {"project_id": str(project.id), "state": project.approval_status},
            )

        try:
            with self.db.begin_nested():
                if name is not None:
                    project.name = name
                if description is not None:
                    project.description = description
                self.db.flush()
        except StaleDataError:
            return self._stale(project_id, expected_version)

        return self._project_to_dict(project)

    def transition(
        self,
        project_id: Any,
        action: Any,
        actor: Actor,
        *,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ProjectResult:
        """
        Perform a workflow action on a project.

        Args:
            project_id: ID of the project
            action: Workflow action to perform
            actor: Acting user
            comment: Review comment
            expected_version: Version the caller last read; a mismatch is refused

        Returns:
            Updated project dictionary, or a denial. A denial leaves the
            project untouched.
        """
        project = self._load(project_id, for_update=True)
        if project is None:
            return self._not_found(project_id)

        stale = self._check_version(project, expected_version)
        if stale is not None:
            return stale

        current = parse_status(project.approval_status)
        if current is None:
            return IllegalTransition(
                DenialReason.ILLEGAL_TRANSITION,
                f"Project has unrecognized approval status {project.approval_status!r}",
                {"project_id": str(project.id), "from_state": project.approval_status},
            )

        machine = ApprovalStateMachine(
            project.id,
            current,
            engine=self.engine,
            comment_required_for=self._comment_actions(),
        )
        result = machine.transition(action, actor, self.context_for(project), comment=comment)
        if not result:
            return result

        act = parse_action(action)
        history = ApprovalHistory(
            id=uuid.uuid4(),
            project_id=project.id,
            from_state=current.value,
            to_state=result.value,
            action=act.value,
            actor_id=actor.user_id,
            actor_role=actor.resolved_role.value,
            comment=comment,
        )

        # Only this project's changes are undone on a concurrent write
        try:
            with self.db.begin_nested():
                project.approval_status = result.value
                self.db.add(history)
                self.db.flush()
        except StaleDataError:
            return self._stale(project_id, expected_version)

        self.notifier.notify(TransitionEvent(
            project_id=str(project.id),
            actor_id=actor.user_id,
            actor_role=actor.resolved_role.value,
            action=act.value,
            from_state=current.value,
            to_state=result.value,
            comment=comment,
        ))

        return self._project_to_dict(project)

    def available_actions(self, project_id: Any, actor: Actor) -> Union[List[str], Denial]:
        """List the workflow actions the actor can take on a project right now."""
        project = self._load(project_id)
        if project is None:
            return self._not_found(project_id)

        current = parse_status(project.approval_status)
        if current is None:
            return []

        machine = ApprovalStateMachine(project.id, current, engine=self.engine)
        return [a.value for a in machine.get_available_actions(actor, self.context_for(project))]

    def list_projects(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """List projects visible to the actor, newest first."""
        query = self._visible_query(actor)
        if query is None:
            return []

        if status:
            state = parse_status(status)
            if state is None:
                return []
            query = query.filter(Project.approval_status == state.value)

        query = query.order_by(Project.created_at.desc()).offset(offset).limit(limit)
        return [self._project_to_dict(p) for p in query.all()]

    def list_pending_reviews(
        self,
        actor: Actor,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Get projects awaiting a review decision from this actor.

        Only states where the actor's role holds the APPROVE transition count,
        and segregation of duties removes the actor's own projects.
        """
        states = [
            s.value for s in PENDING_REVIEW_STATES
            if get_transition_rule(s, WorkflowAction.APPROVE, actor.role) is not None
        ]
        query = self._visible_query(actor)
        if not states or query is None:
            return []

        query = query.filter(Project.approval_status.in_(states))
        query = query.order_by(Project.created_at.asc())

        pending = [
            p for p in query.all()
            if self.engine.evaluate(PermissionName.APPROVE_PROJECT, actor, self.context_for(p))
        ]
        return [self._project_to_dict(p) for p in pending[offset:offset + limit]]

    def get_history(self, project_id: Any) -> List[Dict[str, Any]]:
        """Get the transition history of a project, oldest first."""
        pid = self._parse_id(project_id)
        if pid is None:
            return []

        rows = self.db.query(ApprovalHistory).filter(
            ApprovalHistory.project_id == pid
        ).order_by(ApprovalHistory.created_at.asc()).all()
        return [self._history_to_dict(h) for h in rows]

    def batch_transition(
        self,
        project_ids: List[Any],
        action: Any,
        actor: Actor,
        *,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply one action to several projects.

        Each project is decided independently; a denial is recorded and the
        batch continues.

        Returns:
            Summary with succeeded project IDs and failed entries
        """
        results: Dict[str, Any] = {"succeeded": [], "failed": []}

        for project_id in project_ids:
            result = self.transition(project_id, action, actor, comment=comment)
            if isinstance(result, Denial):
                results["failed"].append({
                    "id": str(project_id),
                    "reason": result.reason.value,
                    "error": result.message,
                })
            else:
                results["succeeded"].append(result["id"])

        return results

    @staticmethod
    def context_for(project) -> ResourceContext:
        """Build the resource descriptor for a project."""
        return ResourceContext(
            owner_id=project.owner_id,
            department_id=project.department_id,
            current_approval_status=parse_status(project.approval_status),
        )

    def _comment_actions(self) -> FrozenSet[WorkflowAction]:
        actions = set()
        if self.settings.require_comment_on_reject:
            actions.add(WorkflowAction.REJECT)
        if self.settings.require_comment_on_request_changes:
            actions.add(WorkflowAction.REQUEST_CHANGES)
        return frozenset(actions)

    def _visible_query(self, actor: Actor):
        """Query of projects the actor can see, or None if they see nothing."""
        level = get_access_level(actor.role) if actor else None
        if level is None:
            return None

        query = self.db.query(Project)
        if level == AccessLevel.ALL:
            return query

        owner_id = str(actor.user_id) if actor.user_id is not None else None
        if level == AccessLevel.DEPARTMENT and actor.department_id is not None:
            return query.filter(or_(
                Project.owner_id == owner_id,
                Project.department_id == str(actor.department_id),
            ))
        return query.filter(Project.owner_id == owner_id)

    def _check_version(self, project, expected_version: Optional[int]) -> Optional[StaleState]:
        if expected_version is None or not self.settings.enforce_version_check:
            return None
        if project.version == expected_version:
            return None
        return StaleState(
            DenialReason.STALE_STATE,
            f"Project changed since version {expected_version} (now {project.version})",
            {
                "project_id": str(project.id),
                "expected_version": expected_version,
                "current_version": project.version,
            },
        )

    def _stale(self, project_id: Any, expected_version: Optional[int]) -> StaleState:
        logger.warning(f"Concurrent update detected on project {project_id}")
        return StaleState(
            DenialReason.STALE_STATE,
            "Project was modified concurrently, reload and retry",
            {"project_id": str(project_id), "expected_version": expected_version},
        )

    def _not_found(self, project_id: Any) -> InvalidRequest:
        return InvalidRequest(
            DenialReason.NOT_FOUND,
            f"Project {project_id} not found",
            {"project_id": str(project_id)},
        )

    @staticmethod
    def _parse_id(project_id: Any) -> Optional[uuid.UUID]:
        if isinstance(project_id, uuid.UUID):
            return project_id
        try:
            return uuid.UUID(str(project_id))
        except ValueError:
            return None

    def _load(self, project_id: Any, *, for_update: bool = False):
        pid = self._parse_id(project_id)
        if pid is None:
            return None

        query = self.db.query(Project).filter(Project.id == pid)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _project_to_dict(self, project) -> Dict[str, Any]:
        """Convert a Project model to dictionary."""
        status = parse_status(project.approval_status)
        return {
            "id": str(project.id),
            "name": project.name,
            "description": project.description,
            "owner_id": project.owner_id,
            "department_id": project.department_id,
            "approval_status": project.approval_status,
            "approval_step": approval_step(status),
            "is_terminal": status in TERMINAL_STATES,
            "version": project.version,
            "created_at": project.created_at.isoformat() if project.created_at else None,
            "updated_at": project.updated_at.isoformat() if project.updated_at else None,
        }

    @staticmethod
    def _history_to_dict(history) -> Dict[str, Any]:
        return {
            "id": str(history.id),
            "project_id": str(history.project_id),
            "from_state": history.from_state,
            "to_state": history.to_state,
            "action": history.action,
            "actor_id": history.actor_id,
            "actor_role": history.actor_role,
            "comment": history.comment,
            "created_at": history.created_at.isoformat() if history.created_at else None,
        }
