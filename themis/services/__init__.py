"""Application services for Themis."""
