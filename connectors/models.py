"""
Re-exports the Integration model from the database package for connector code.
"""

from database.models import Integration  # noqa: F401

__all__ = ["Integration"]
