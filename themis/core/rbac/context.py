"""Value objects passed into every permission and workflow decision."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from .roles import Role, parse_role

if TYPE_CHECKING:
    from themis.core.approval.states import ApprovalStatus


@dataclass(frozen=True)
class Actor:
    """The identity attempting an action, as resolved by the session layer."""

    user_id: Optional[str]
    role: Union[Role, str, None]
    department_id: Optional[str] = None

    @property
    def resolved_role(self) -> Optional[Role]:
        return parse_role(self.role)


@dataclass(frozen=True)
class ResourceContext:
    """
    Describes the resource an action targets.

    Ownership is taken from ``is_own_item`` when the caller already knows it,
    otherwise it is derived by comparing ``owner_id`` with the actor.
    """

    owner_id: Optional[str] = None
    is_own_item: Optional[bool] = None
    department_id: Optional[str] = None
    current_approval_status: Optional["ApprovalStatus"] = None

    def owned_by(self, actor: Optional[Actor]) -> bool:
        if self.is_own_item is not None:
            return self.is_own_item
        if actor is None or actor.user_id is None or self.owner_id is None:
            return False
        return str(self.owner_id) == str(actor.user_id)

    def in_department_of(self, actor: Optional[Actor]) -> bool:
        """True when the resource names no department or matches the actor's."""
        if self.department_id is None:
            return True
        if actor is None or actor.department_id is None:
            return False
        return str(self.department_id) == str(actor.department_id)
