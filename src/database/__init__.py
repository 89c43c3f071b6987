"""
Database Layer for the Prospect Pipeline.

This module provides:
- Async database engine and session management
- SQL implementation of the prospect store
"""

from .async_engine import (
    get_async_engine,
    get_async_session,
    get_async_session_factory,
    get_session_factory,
    check_database_connection,
    init_database,
    close_database,
)

from .repositories import ProspectRepository

__all__ = [
    # Async Engine
    "get_async_engine",
    "get_async_session",
    "get_async_session_factory",
    "get_session_factory",
    "check_database_connection",
    "init_database",
    "close_database",
    # Repositories
    "ProspectRepository",
]
