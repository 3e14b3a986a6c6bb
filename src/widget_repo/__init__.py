"""
This module exports the models, errors and the factory for opening a widget repository.
"""
from .adaptors.sqlite import sqlite_repo_factory
from .config import RepoConfig
from .errors import ConflictError, NotFoundError, RepoError, StorageFault
from .models import Widget, WidgetEvent

__all__ = [
    "Widget",
    "WidgetEvent",
    "RepoConfig",
    "RepoError",
    "ConflictError",
    "NotFoundError",
    "StorageFault",
    "sqlite_repo_factory",
]
