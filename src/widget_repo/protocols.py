"""
This module defines the abstract protocols for storage and the repository itself.

`RepoImpl` talks to a `StorageHandle`, never to a driver, so another relational
backend only has to provide the same conditional-update and append semantics.
"""
from typing import AsyncIterator, Protocol

from .models import Widget, WidgetEvent


class StorageHandle(Protocol):
    """
    Defines the contract that all storage adapters must implement.
    Each write method runs in its own transaction and either commits fully or
    rolls back and raises.
    """

    async def create(self, widget_id: str, value: str) -> Widget:
        ...

    async def update(self, widget_id: str, expected_version: int, value: str) -> Widget:
        ...

    async def find(self, widget_id: str) -> Widget | None:
        ...

    def get_events(self, widget_id: str, start_version: int = 0) -> AsyncIterator[WidgetEvent]:
        ...

    async def close(self):
        ...


class Repo(Protocol):
    """
    Defines the public interface of the widget repository.
    """

    async def create(self, widget: Widget) -> Widget:
        ...

    async def update(self, widget: Widget) -> Widget:
        ...

    async def find(self, widget_id: str) -> Widget:
        ...

    async def event_values(self, widget_id: str) -> str:
        ...

    def read(self, widget_id: str, from_version: int = 0) -> AsyncIterator[WidgetEvent]:
        ...
