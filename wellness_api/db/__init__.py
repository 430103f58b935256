"""
Database Module
===============

Provides database session management and base model.
"""

from wellness_api.db.base import Base
from wellness_api.db.session import get_db, init_db, close_db

__all__ = ["Base", "get_db", "init_db", "close_db"]
