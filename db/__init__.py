"""Database package for the CRM core."""
from db.connection import AsyncSessionLocal, dispose_engine, engine, get_db

__all__ = ["engine", "AsyncSessionLocal", "get_db", "dispose_engine"]
