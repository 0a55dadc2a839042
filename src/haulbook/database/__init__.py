"""Database layer for haulbook application."""

from haulbook.database.base import Database
from haulbook.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
