"""Database layer for the assessing engine using SQLAlchemy 2.0 async."""

from __future__ import annotations

from assessing.db.base import Base
from assessing.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
