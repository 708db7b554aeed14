"""Project model carrying the approval lifecycle."""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from themis.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    """
    A project under approval.

    ``approval_status`` is written only by the approval service. ``version``
    is bumped on every flush and guards against concurrent transitions.
    """
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Ownership and scoping
    owner_id = Column(String(64), nullable=False, index=True)
    department_id = Column(String(64), nullable=True, index=True)

    # Workflow state
    approval_status = Column(String(50), nullable=False, default="DRAFT", index=True)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    history = relationship(
        "ApprovalHistory",
        back_populates="project",
        order_by="ApprovalHistory.created_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Project {self.name} [{self.approval_status}] v{self.version}>"
