# src/conclave/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, Database, get_db

__all__ = ["Base", "Database", "get_db"]
