from .factory import sqlite_repo_factory
from .handle import SQLiteHandle, SQLiteStorageHandle, sqlite_open_adapter, sqlite_read_adapter
from .schema import create_schema, drop_schema

__all__ = [
    "sqlite_repo_factory",
    "SQLiteHandle",
    "SQLiteStorageHandle",
    "sqlite_open_adapter",
    "sqlite_read_adapter",
    "create_schema",
    "drop_schema",
]
