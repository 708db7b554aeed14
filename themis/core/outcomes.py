"""Denial values returned by the permission engine and the approval workflow.

Decisions are returned, never raised. Every denial is falsy, so callers
branch on the result directly:

    result = next_state(current, role, action)
    if not result:
        surface(result.message)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class DenialReason(str, Enum):
    """Why a permission check or workflow action was refused."""

    # Permission family
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN_ROLE = "unknown_role"
    UNKNOWN_PERMISSION = "unknown_permission"

    # Workflow family
    ILLEGAL_TRANSITION = "illegal_transition"
    STALE_STATE = "stale_state"

    # Request validation
    COMMENT_REQUIRED = "comment_required"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Denial:
    """Base class for refused decisions."""

    reason: DenialReason
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason.value,
            "message": self.message,
            "details": dict(self.details),
        }


class PermissionDenied(Denial):
    """An actor lacks a permission. Unknown roles and permissions land here too."""


class IllegalTransition(Denial):
    """No transition exists for the (state, role, action) combination."""


class StaleState(Denial):
    """The resource moved on since the caller last read it."""


class InvalidRequest(Denial):
    """The request itself is incomplete (missing comment, unknown resource)."""


PERMISSION_REASONS = frozenset([
    DenialReason.PERMISSION_DENIED,
    DenialReason.UNKNOWN_ROLE,
    DenialReason.UNKNOWN_PERMISSION,
])
