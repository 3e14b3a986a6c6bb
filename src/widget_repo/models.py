"""
This module defines the core data models for the widget repository using Pydantic.
A `Widget` is the materialized current view of an entity; a `WidgetEvent` is one
immutable entry of its event log.
"""
import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class Widget(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    # The version the caller last read. Ignored on create.
    version: int = Field(default=0, ge=0)
    value: str

    @field_validator("id", "value")
    @classmethod
    def _encodable(cls, v: str) -> str:
        # Lone surrogates are valid `str` but cannot be stored as TEXT.
        v.encode("utf-8")
        return v


class WidgetEvent(BaseModel):
    sequence_id: int
    widget_id: str
    # Post-mutation version; the first event of a widget is version 1.
    version: int = Field(ge=1)
    value: str  # Raw delta, not the accumulated value
    timestamp: datetime
