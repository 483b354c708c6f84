"""SQL-backed storage for the local draft medium."""

from .base import Base
from .session import dispose_engine, ensure_schema, get_engine, session_scope

__all__ = ["Base", "dispose_engine", "ensure_schema", "get_engine", "session_scope"]
