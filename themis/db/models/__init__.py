"""Database models for Themis."""

from themis.db.models.project import Project
from themis.db.models.approval import ApprovalHistory

__all__ = [
    "Project",
    "ApprovalHistory",
]
