"""
Re-exports the User model from the database package for auth code.
"""

from database.models import User  # noqa: F401

__all__ = ["User"]
