from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from themis.core.approval.service import ApprovalService
from themis.core.outcomes import Denial, DenialReason
from themis.core.rbac.context import Actor
from themis.db.session import SessionLocal
from themis.services.notifications import TransitionNotifier


DENIAL_STATUS_CODES = {
    DenialReason.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    DenialReason.UNKNOWN_ROLE: status.HTTP_403_FORBIDDEN,
    DenialReason.UNKNOWN_PERMISSION: status.HTTP_403_FORBIDDEN,
    DenialReason.ILLEGAL_TRANSITION: status.HTTP_409_CONFLICT,
    DenialReason.STALE_STATE: status.HTTP_409_CONFLICT,
    DenialReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DenialReason.COMMENT_REQUIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
    x_actor_department: Optional[str] = Header(None),
) -> Actor:
    """
    Resolve the acting identity from the session layer's headers.

    Authentication happens upstream; the role is passed through as given and
    an unrecognized role simply holds no permissions.
    """
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity",
        )
    return Actor(
        user_id=x_actor_id,
        role=x_actor_role,
        department_id=x_actor_department or None,
    )


def raise_for_denial(denial: Denial) -> None:
    """Translate a denial into the matching HTTP error."""
    raise HTTPException(
        status_code=DENIAL_STATUS_CODES.get(denial.reason, status.HTTP_400_BAD_REQUEST),
        detail=denial.to_dict(),
    )


# Process-wide audit sink
notifier = TransitionNotifier()


def get_notifier() -> TransitionNotifier:
    return notifier


def get_approval_service(
    db: Session = Depends(get_db),
    transition_notifier: TransitionNotifier = Depends(get_notifier),
) -> ApprovalService:
    """Approval service bound to the request's session."""
    return ApprovalService(db, notifier=transition_notifier)
