"""Core decision logic for Themis: RBAC and the project approval workflow."""
