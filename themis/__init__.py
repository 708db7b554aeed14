"""Themis project approvals: role capabilities and approval workflow."""

__version__ = "0.3.0"
