"""Database layer for rentledger application."""

from rentledger.database.base import Database
from rentledger.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
