"""Database session management."""

from fixers.db.session import Database, atomic, get_db

__all__ = ["Database", "atomic", "get_db"]
