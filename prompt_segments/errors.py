"""Exceptions raised by the segment factory and tree operations."""

from __future__ import annotations


class ValidationError(ValueError):
    """Invalid constructor or update arguments for a segment."""
