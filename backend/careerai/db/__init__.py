"""Database utilities for the CareerAI backend."""

from .session import (
    SessionManager,
    dispose_engine,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = [
    "SessionManager",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
