"""Persistence layer for Themis projects and approval history."""
