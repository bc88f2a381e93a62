"""Database utilities for the articles store."""

from .models import Article, Base, IngestionRun, RunStatus  # noqa: F401
from .session import create_db_engine, create_session_factory, init_schema, session_scope  # noqa: F401

__all__ = [
    "Article",
    "Base",
    "IngestionRun",
    "RunStatus",
    "create_db_engine",
    "create_session_factory",
    "init_schema",
    "session_scope",
]
