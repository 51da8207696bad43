# src/tandem_chat/db/__init__.py
"""Database configuration and utilities."""

from .session import SessionLocal, get_db, session_scope

__all__ = ["get_db", "session_scope", "SessionLocal"]
