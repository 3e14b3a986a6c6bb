"""
This module implements the widget repository on top of a `StorageHandle`.

`RepoImpl` validates its input and maps "no row" to `NotFoundError`; the
atomic view-update-plus-event-append protocol lives in the storage handle,
where it can run inside a single database transaction.
"""
import logging
from typing import AsyncIterator

from .errors import ConflictError, NotFoundError
from .models import Widget, WidgetEvent
from .protocols import Repo, StorageHandle


class RepoImpl(Repo):
    def __init__(self, handle: StorageHandle):
        self.handle = handle

    async def create(self, widget: Widget) -> Widget:
        """Persists a new widget at version 1. Raises `ConflictError` if the id is taken."""
        if not isinstance(widget, Widget):
            raise TypeError("widget must be a Widget object")
        try:
            return await self.handle.create(widget.id, widget.value)
        except ConflictError:
            logging.debug(f"Rejected create of existing widget {widget.id}")
            raise

    async def update(self, widget: Widget) -> Widget:
        """
        Applies `widget.value` to the stored widget, provided it is still at
        `widget.version`. Returns the widget as stored after the update.
        Raises `ConflictError` if another writer got there first or the widget
        does not exist; nothing is written in that case.
        """
        if not isinstance(widget, Widget):
            raise TypeError("widget must be a Widget object")
        try:
            return await self.handle.update(widget.id, widget.version, widget.value)
        except ConflictError:
            logging.debug(f"Rejected update of widget {widget.id} at stale version {widget.version}")
            raise

    async def find(self, widget_id: str) -> Widget:
        widget = await self.handle.find(widget_id)
        if widget is None:
            raise NotFoundError(widget_id)
        return widget

    async def event_values(self, widget_id: str) -> str:
        """Rebuilds the widget's value from the event log alone."""
        return "".join([event.value async for event in self.handle.get_events(widget_id)])

    async def read(self, widget_id: str, from_version: int = 0) -> AsyncIterator[WidgetEvent]:
        """Yields the widget's events after `from_version` (exclusive), oldest first."""
        async for event in self.handle.get_events(widget_id, start_version=from_version):
            yield event
