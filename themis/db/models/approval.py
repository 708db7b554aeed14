"""Approval history model.

Records every applied transition as the audit trail of a project's review.
"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from themis.db.base import Base
from themis.db.models.project import _utcnow


class ApprovalHistory(Base):
    """One applied state transition."""
    __tablename__ = "approval_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    # Transition details
    from_state = Column(String(50), nullable=False)
    to_state = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)

    # Actor
    actor_id = Column(String(64), nullable=True)
    actor_role = Column(String(50), nullable=True)

    # Review comment (required for rejections and change requests)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    project = relationship("Project", back_populates="history")

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.from_state} -> {self.to_state}>"
