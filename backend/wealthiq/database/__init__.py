"""
Database engine and session helpers.
"""

from wealthiq.database.session import (
    get_db_session,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = ["get_db_session", "get_engine", "get_session_factory", "session_scope"]
